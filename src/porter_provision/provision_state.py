"""
Provisioning state.

Records the stack provisioned in each region so later commands (promotion,
cleanup, status) know which stacks belong to a run.
"""
import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from porter_provision.errors import LocalIOError
from porter_provision.models import RegionProvisioningResult

logger = logging.getLogger(__name__)


@dataclass
class ProvisionState:
    """Outcome of provisioning one service version into one environment."""
    service_name: str
    service_version: str
    environment: str
    regions: Dict[str, RegionProvisioningResult] = field(default_factory=dict)
    provisioned_at: Optional[str] = None

    def region(self, region_name: str) -> RegionProvisioningResult:
        """Get or create the result record for a region."""
        if region_name not in self.regions:
            self.regions[region_name] = RegionProvisioningResult(region=region_name)
        return self.regions[region_name]

    @property
    def succeeded(self) -> bool:
        return bool(self.regions) and all(r.stack_id for r in self.regions.values())

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "ProvisionState":
        regions = {
            name: RegionProvisioningResult(**region)
            for name, region in data.get("regions", {}).items()
        }
        return cls(
            service_name=data["service_name"],
            service_version=data["service_version"],
            environment=data["environment"],
            regions=regions,
            provisioned_at=data.get("provisioned_at"),
        )


class ProvisionStateManager:
    """Loads and saves ProvisionState as JSON."""

    def __init__(self, state_file: str):
        self.state_file = Path(state_file)

    def save(self, state: ProvisionState) -> None:
        state.provisioned_at = datetime.now(timezone.utc).isoformat()
        try:
            self.state_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.state_file, 'w') as f:
                json.dump(state.to_dict(), f, indent=2)
        except OSError as e:
            raise LocalIOError(f"write {self.state_file}", e) from e
        logger.info(f"Saved provision state to {self.state_file}")

    def load(self) -> Optional[ProvisionState]:
        if not self.state_file.exists():
            return None
        try:
            with open(self.state_file, 'r') as f:
                return ProvisionState.from_dict(json.load(f))
        except (OSError, json.JSONDecodeError, KeyError, TypeError) as e:
            raise LocalIOError(f"read {self.state_file}", e) from e
