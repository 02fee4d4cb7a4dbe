"""
Startup options: the aggregate the start delegate receives in try mode and hosted mode.

Both the root command and the hidden "hosted" command bind through the same literal
schema. Root values (root_directory, add_source, uri) are always resolved since the
root is on every path; hosted-only values fall back to the defaults below when the
root itself is invoked.
"""
from collections import namedtuple

from .binding import Parameter, Signature


class StartupOptions(namedtuple("StartupOptions", (
        "root_directory",
        "add_source",
        "uri",
        "id",
        "production",
        "language_service",
        "key",
        "application_insights_key",
        "region_id",
        "log_to_file",
))):
    """
    Agent startup settings.

    - root_directory, add_source: pathlib.Path (existing directories). "hosted" does
      not accept the root's options, so in hosted mode both always hold the root's
      default, the working directory at parse time.
    - uri: urllib.parse.SplitResult or None; always None in hosted mode.
    - id: agent identifier (the machine name in hosted mode).
    - production, language_service, log_to_file: booleans.
    - key, application_insights_key, region_id: strings or None.
    """
    __slots__ = ()

    @property
    def hosted(self):
        """
        True when the options come from the hosted command (an id is always resolved there).
        """
        return self.id is not None


signature = Signature(
    Parameter("root_directory"),
    Parameter("add_source"),
    Parameter("uri"),
    Parameter("id", None),
    Parameter("production", False),
    Parameter("language_service", False),
    Parameter("key", None),
    Parameter("application_insights_key", None),
    Parameter("region_id", None),
    Parameter("log_to_file", False),
    factory=StartupOptions,
)


__all__ = (
    "StartupOptions",
)
