"""
Pydantic models for records returned by the on-chain data providers.

Field names follow Python conventions; the provider's camelCase keys are
accepted through aliases so raw Helius payloads validate directly.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TokenTransfer(BaseModel):
    """A single SPL token movement inside a transaction."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    mint: str = ""
    from_user_account: Optional[str] = Field(default=None, alias="fromUserAccount")
    to_user_account: Optional[str] = Field(default=None, alias="toUserAccount")
    from_token_account: Optional[str] = Field(default=None, alias="fromTokenAccount")
    to_token_account: Optional[str] = Field(default=None, alias="toTokenAccount")
    token_amount: Optional[float] = Field(default=None, alias="tokenAmount")
    token_standard: Optional[str] = Field(default=None, alias="tokenStandard")


class NativeTransfer(BaseModel):
    """A SOL movement inside a transaction."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    from_user_account: Optional[str] = Field(default=None, alias="fromUserAccount")
    to_user_account: Optional[str] = Field(default=None, alias="toUserAccount")
    amount: Optional[float] = None


class Transaction(BaseModel):
    """Enhanced transaction record. Immutable once fetched."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    signature: str
    timestamp: Optional[int] = None
    type: Optional[str] = None
    source: Optional[str] = None
    fee: Optional[int] = None
    fee_payer: Optional[str] = Field(default=None, alias="feePayer")
    token_transfers: List[TokenTransfer] = Field(
        default_factory=list, alias="tokenTransfers"
    )
    native_transfers: List[NativeTransfer] = Field(
        default_factory=list, alias="nativeTransfers"
    )

    @field_validator("token_transfers", "native_transfers", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        """Providers send null instead of an empty list for some records."""
        return [] if v is None else v

    def touches_mint(self, mint: str) -> bool:
        return any(transfer.mint == mint for transfer in self.token_transfers)


class ProviderResult(BaseModel):
    """Success flag plus payload or error, returned by metadata lookups."""

    success: bool
    data: Any = None
    error: Optional[str] = None


class EntityMetadata(BaseModel):
    """Normalized classification inputs for one address."""

    address: str
    is_on_curve: Optional[bool] = None
    type: Optional[str] = None
    account_type: Optional[str] = None
    account_label: Optional[str] = None
    account_tags: List[str] = Field(default_factory=list)

    @property
    def is_pda(self) -> bool:
        return self.is_on_curve is False
