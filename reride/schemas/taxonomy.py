# reride/schemas/taxonomy.py
from pydantic import BaseModel, Field, RootModel


class VehicleModel(BaseModel):
    name: str
    variants: list[str] = Field(default_factory=list)


class VehicleMake(BaseModel):
    name: str
    models: list[VehicleModel] = Field(default_factory=list)


class VehicleTaxonomy(RootModel[dict[str, list[VehicleMake]]]):
    """category -> makes -> models -> variants. Keyed only by (category, make, model)."""

    def categories(self) -> list[str]:
        return list(self.root.keys())

    def makes(self, category: str) -> list[VehicleMake]:
        return self.root.get(category, [])

    def to_wire(self) -> dict:
        return self.model_dump(mode="json")
