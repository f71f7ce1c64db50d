"""Jurisdiction (state) data models."""

from typing import Optional

from pydantic import BaseModel, Field


class Jurisdiction(BaseModel):
    """A state whose permits and monitoring reports the pipeline accepts."""

    model_config = {"frozen": True}

    code: str = Field(..., description="Two-letter state code")
    name: str = Field(..., description="Full state name")
    agency: str = Field(..., description="State environmental agency")
    dmr_system: str = Field(..., description="DMR reporting system used by the agency")

    @property
    def folder_name(self) -> str:
        """Storage folder name for state-scoped paths."""
        return self.name.replace(" ", "_")


JURISDICTIONS: dict[str, Jurisdiction] = {
    "AL": Jurisdiction(code="AL", name="Alabama", agency="ADEM", dmr_system="E2DMR"),
    "KY": Jurisdiction(code="KY", name="Kentucky", agency="KYDEP", dmr_system="NetDMR"),
    "TN": Jurisdiction(code="TN", name="Tennessee", agency="TDEC", dmr_system="MyTDEC"),
    "VA": Jurisdiction(code="VA", name="Virginia", agency="DMLR", dmr_system="eDMR"),
    "WV": Jurisdiction(code="WV", name="West Virginia", agency="DEP", dmr_system="NetDMR"),
}

VALID_STATE_CODES: frozenset[str] = frozenset(JURISDICTIONS)


def get_jurisdiction(code: str) -> Optional[Jurisdiction]:
    """Look up a jurisdiction by state code, case-insensitively."""
    return JURISDICTIONS.get(code.upper())
