"""Sandbox configuration models."""

from pydantic import BaseModel, ConfigDict, Field


class SandboxOptions(BaseModel):
    """
    Feature flags of one sandbox.

    Every ``allow_*`` flag gates one language construct. The ``overwrite_*``
    flags enable the rewrite of intercepted built-ins, and the
    ``auto_whitelist_*`` flags let the sandboxed code whitelist what it
    defines itself.
    """

    model_config = ConfigDict(extra="forbid")

    # Runtime handle name, reserved inside sandboxed code
    name: str = Field(default="__sandbox", pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")

    allow_functions: bool = False
    allow_closures: bool = False
    allow_casting: bool = False
    allow_classes: bool = False
    allow_interfaces: bool = False
    allow_traits: bool = False
    allow_constants: bool = False
    allow_globals: bool = False
    allow_generators: bool = False
    allow_static_variables: bool = False
    allow_objects: bool = False
    allow_references: bool = True
    allow_error_suppressing: bool = False
    allow_halting: bool = False
    allow_namespaces: bool = False
    allow_aliases: bool = False
    allow_escaping: bool = False
    allow_backticks: bool = False
    allow_variables: bool = True

    overwrite_defined_funcs: bool = True
    overwrite_func_get_args: bool = True
    overwrite_superglobals: bool = True

    auto_whitelist_functions: bool = True
    auto_whitelist_constants: bool = True
    auto_whitelist_globals: bool = True
    auto_whitelist_classes: bool = True
    auto_whitelist_interfaces: bool = True
    auto_whitelist_traits: bool = True


class Definitions(BaseModel):
    """Names the sandbox runtime provides its own implementation for."""

    model_config = ConfigDict(extra="forbid")

    functions: list[str] = Field(default_factory=list)
    magic_constants: list[str] = Field(default_factory=list)
    classes: dict[str, str] = Field(default_factory=dict)  # name -> substitute
    namespaces: list[str] = Field(default_factory=list)
    aliases: dict[str, str | None] = Field(default_factory=dict)


class SandboxConfig(BaseModel):
    """Complete sandbox configuration as loaded from a config file."""

    model_config = ConfigDict(extra="forbid")

    options: SandboxOptions = Field(default_factory=SandboxOptions)
    whitelist: dict[str, list[str]] = Field(default_factory=dict)
    blacklist: dict[str, list[str]] = Field(default_factory=dict)
    definitions: Definitions = Field(default_factory=Definitions)
