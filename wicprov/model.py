from dataclasses import dataclass
from typing import Optional

@dataclass
class InjectPlan:
    config: str
    image: str
    generate_bmap: bool = False
    plan_only: bool = False

@dataclass
class LoopDevice:
    image: str
    device: str

@dataclass
class Partition:
    path: str
    label: Optional[str] = None
    partlabel: Optional[str] = None

@dataclass
class Mounts:
    work_dir: str
    etc: str
    data: str
    root: str

@dataclass(frozen=True)
class ProvisioningBackend:
    name: str
    binary: str
    activation: str
