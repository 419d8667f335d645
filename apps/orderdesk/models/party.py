from pydantic import BaseModel, Field

class Party(BaseModel):
    id: str = Field(
        ...,
        examples=["98681ed3-d1e5-4440-b249-85f181f32b0e"],
        description="Vendor or customer UUID"
    )
    name: str = Field(
        ...,
        examples=["PT Sumber Makmur"],
        description="Display name"
    )
    address: str | None = Field(
        None,
        description="Postal address, free text"
    )
    is_active: bool = True
