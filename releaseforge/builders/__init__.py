"""Build task variants — one per target platform, invoked uniformly."""

from releaseforge.builders.base import (
    BuildCancelledError,
    BuildTask,
    BuildTaskError,
    BuildTimeoutError,
    CallableBuildTask,
)
from releaseforge.builders.platforms import (
    LinuxPackageTask,
    MacDiskImageTask,
    SubprocessBuildTask,
    WindowsArmInstallerTask,
    WindowsInstallerTask,
    default_platform_tasks,
)

__all__ = [
    "BuildCancelledError",
    "BuildTask",
    "BuildTaskError",
    "BuildTimeoutError",
    "CallableBuildTask",
    "LinuxPackageTask",
    "MacDiskImageTask",
    "SubprocessBuildTask",
    "WindowsArmInstallerTask",
    "WindowsInstallerTask",
    "default_platform_tasks",
]
