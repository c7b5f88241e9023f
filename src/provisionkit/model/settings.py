"""Install settings - Immutable inputs to a plan.

Settings are resolved once (config file + CLI flags) before planning and
never change afterwards. They are stored in the receipt so a later revert
can rebuild every path without looking at the live host.
"""

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

SYSTEMD_UNIT_DIR = "/etc/systemd/system"
TMPFILES_DIR = "/etc/tmpfiles.d"
OPENRC_INIT_DIR = "/etc/init.d"
RUNIT_SV_DIR = "/etc/sv"
RUNIT_SCAN_DIR = "/var/service"
LAUNCHD_DAEMON_DIR = "/Library/LaunchDaemons"

DEFAULT_PREFIX = "/opt/provisionkit"
DEFAULT_DAEMON_NAME = "provisionkit-daemon"
DEFAULT_LAUNCHD_LABEL = "org.provisionkit.daemon"


class InitSystem(str, Enum):
    """Service supervisors the daemon can be registered with."""

    SYSTEMD = "systemd"
    LAUNCHD = "launchd"
    OPENRC = "openrc"
    RUNIT = "runit"
    NONE = "none"


class ConflictPolicy(str, Enum):
    """What planning does when a destination exists in an unexpected form."""

    FAIL = "fail"  # refuse, operator must clean up
    PROMPT = "prompt"  # ask the confirmation callback
    FORCE = "force"  # replace without asking


@dataclass(frozen=True)
class ServiceLayout:
    """Every absolute path the init-service registration touches.

    All paths derive from the distribution prefix and the daemon name, so
    only those three strings need to be persisted.
    """

    prefix: str = DEFAULT_PREFIX
    daemon_name: str = DEFAULT_DAEMON_NAME
    launchd_label: str = DEFAULT_LAUNCHD_LABEL

    @property
    def profile(self) -> str:
        return f"{self.prefix}/var/profiles/default"

    @property
    def daemon_bin(self) -> str:
        return f"{self.profile}/bin/{self.daemon_name}"

    @property
    def config_dir(self) -> str:
        return f"{self.prefix}/etc"

    @property
    def config_file(self) -> str:
        return f"{self.config_dir}/{self.daemon_name}.conf"

    @property
    def receipt_path(self) -> str:
        return f"{self.prefix}/receipt.json"

    # systemd

    @property
    def service_unit(self) -> str:
        return f"{self.daemon_name}.service"

    @property
    def socket_unit(self) -> str:
        return f"{self.daemon_name}.socket"

    @property
    def service_src(self) -> str:
        return f"{self.profile}/lib/systemd/system/{self.service_unit}"

    @property
    def service_dest(self) -> str:
        return f"{SYSTEMD_UNIT_DIR}/{self.service_unit}"

    @property
    def socket_src(self) -> str:
        return f"{self.profile}/lib/systemd/system/{self.socket_unit}"

    @property
    def socket_dest(self) -> str:
        return f"{SYSTEMD_UNIT_DIR}/{self.socket_unit}"

    @property
    def tmpfiles_src(self) -> str:
        return f"{self.profile}/lib/tmpfiles.d/{self.daemon_name}.conf"

    @property
    def tmpfiles_dest(self) -> str:
        return f"{TMPFILES_DIR}/{self.daemon_name}.conf"

    @property
    def tmpfiles_prefix(self) -> str:
        return f"{self.prefix}/var"

    # OpenRC

    @property
    def openrc_service(self) -> str:
        return f"{OPENRC_INIT_DIR}/{self.daemon_name}"

    # runit

    @property
    def runit_service(self) -> str:
        return f"{RUNIT_SV_DIR}/{self.daemon_name}"

    @property
    def runit_symlink(self) -> str:
        return f"{RUNIT_SCAN_DIR}/{self.daemon_name}"

    @property
    def runit_run(self) -> str:
        return f"{self.runit_service}/run"

    @property
    def runit_down(self) -> str:
        return f"{self.runit_service}/down"

    # launchd

    @property
    def launchd_src(self) -> str:
        return f"{self.profile}/Library/LaunchDaemons/{self.launchd_label}.plist"

    @property
    def launchd_dest(self) -> str:
        return f"{LAUNCHD_DAEMON_DIR}/{self.launchd_label}.plist"


class InstallSettings(BaseModel):
    """Settings for one install run."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    prefix: str = Field(DEFAULT_PREFIX, description="Root of the distribution on disk")
    daemon_name: str = Field(DEFAULT_DAEMON_NAME, description="Name of the daemon and its units")
    launchd_label: str = Field(DEFAULT_LAUNCHD_LABEL, description="launchd job label")
    init: InitSystem = Field(InitSystem.SYSTEMD, description="Supervisor to register with")
    start_daemon: bool = Field(True, description="Start the daemon once registered")
    on_conflict: ConflictPolicy = Field(ConflictPolicy.FAIL, description="Conflict policy")
    explain: bool = Field(False, description="Show explanation lines in descriptions")
    daemon_config: list[str] = Field(default_factory=list, description="Lines of the daemon config file")

    @property
    def layout(self) -> ServiceLayout:
        return ServiceLayout(
            prefix=self.prefix,
            daemon_name=self.daemon_name,
            launchd_label=self.launchd_label,
        )
