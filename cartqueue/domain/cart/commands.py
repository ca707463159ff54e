import hashlib
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cartqueue.domain.cart.errors import CartServiceError, ErrorKind

CONTENT_TYPE = "application/json"
CONTENT_ENCODING = "utf-8"
# ids are stored as BIGINT, quantities as INTEGER
MAX_ID = 2**63 - 1
MAX_QUANTITY = 2**31 - 1
IDEMPOTENCY_HEADER = "idempotency_key"
ENQUEUED_AT_HEADER = "enqueued_at"


class CartMutationCommand(BaseModel):
    """
    Message payload: add `quantity` of `product_id` to the cart of `user_id`.

    Wire format is a JSON object with exactly these three integer fields.
    Unknown fields, missing fields, non-integer values and values the store
    cannot hold are rejected.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", strict=True)

    user_id: int = Field(ge=0, le=MAX_ID)
    product_id: int = Field(ge=0, le=MAX_ID)
    quantity: int = Field(gt=0, le=MAX_QUANTITY)

    def to_message(self) -> bytes:
        return self.model_dump_json().encode(CONTENT_ENCODING)

    @classmethod
    def from_message(cls, body: bytes | str) -> "CartMutationCommand":
        """
        Raises:
            CartServiceError(MALFORMED_MESSAGE): body is not a valid command
        """
        try:
            return cls.model_validate_json(body)
        except (ValidationError, UnicodeDecodeError) as e:
            raise CartServiceError(
                ErrorKind.MALFORMED_MESSAGE, "cart message could not be decoded", cause=e
            ) from e

    def idempotency_key(self, enqueued_at: datetime) -> str:
        """Deduplication key for one enqueue of this command"""
        raw = f"{self.user_id}:{self.product_id}:{enqueued_at.isoformat()}"
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()
