from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    StrictStr,
    TypeAdapter,
    field_validator,
    model_validator,
)


class TailwindcssDTO(BaseModel):
    model_config = ConfigDict(extra="ignore")

    config: Optional[StrictStr] = None
    stylesheet: Optional[StrictStr] = None
    functions: List[StrictStr] = []
    attributes: List[StrictStr] = []
    preserveWhitespace: StrictBool = False
    preserveDuplicates: StrictBool = False

    @model_validator(mode="after")
    def _config_or_stylesheet(self) -> "TailwindcssDTO":
        if self.config is not None and self.stylesheet is not None:
            raise ValueError(
                "`experimentalTailwindcss.config` and `experimentalTailwindcss.stylesheet` "
                "are mutually exclusive"
            )
        return self


class SortImportsDTO(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ignoreCase: StrictBool = True
    newlinesBetween: StrictBool = True
    order: Literal["asc", "desc"] = "asc"
    partitionByNewline: StrictBool = False
    partitionByComment: StrictBool = False


class FormatConfigDTO(BaseModel):
    """Strict view of a combined option payload; unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    useTabs: Optional[StrictBool] = None
    tabWidth: Optional[Annotated[StrictInt, Field(ge=0, le=24)]] = None
    printWidth: Optional[Annotated[StrictInt, Field(ge=1, le=320)]] = None
    singleQuote: Optional[StrictBool] = None
    jsxSingleQuote: Optional[StrictBool] = None
    semi: Optional[StrictBool] = None
    endOfLine: Optional[Literal["lf", "crlf", "cr"]] = None
    experimentalTailwindcss: Optional[Union[TailwindcssDTO, StrictBool]] = None
    experimentalSortImports: Optional[Union[SortImportsDTO, StrictBool]] = None
    ignorePatterns: List[StrictStr] = []


RuleSeverity = Union[
    Literal["off", "allow", "warn", "error", "deny"],
    Literal[0, 1, 2],
]
_SEVERITY_ADAPTER: TypeAdapter[Any] = TypeAdapter(RuleSeverity)


class LintOverrideDTO(BaseModel):
    model_config = ConfigDict(extra="forbid")

    files: List[str]
    rules: Dict[str, Any] = {}
    plugins: Optional[List[str]] = None
    env: Dict[str, bool] = {}
    globals: Dict[str, Union[bool, str]] = {}


class LintConfig(BaseModel):
    """A lint configuration reported by the host for one config file."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    schema_url: Optional[str] = Field(default=None, alias="$schema")
    plugins: Optional[List[str]] = None
    jsPlugins: List[str] = []
    categories: Dict[str, RuleSeverity] = {}
    rules: Dict[str, Any] = {}
    settings: Dict[str, Any] = {}
    env: Dict[str, bool] = {}
    globals: Dict[str, Union[bool, str]] = {}
    ignorePatterns: List[str] = []
    overrides: List[LintOverrideDTO] = []
    extends: List[str] = []
    path: str = Field(default="", exclude=True)

    @field_validator("rules")
    @classmethod
    def _rule_settings(cls, rules: Dict[str, Any]) -> Dict[str, Any]:
        for name, setting in rules.items():
            severity = setting[0] if isinstance(setting, list) and setting else setting
            try:
                _SEVERITY_ADAPTER.validate_python(severity)
            except ValueError as exc:
                raise ValueError(f"invalid severity for rule `{name}`: {severity!r}") from exc
        return rules


class HostConfigPayloadDTO(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str
    config: Any


class HostConfigFailureDTO(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str
    error: str


class HostConfigSuccessDTO(BaseModel):
    model_config = ConfigDict(extra="forbid")

    Success: List[HostConfigPayloadDTO]


class HostConfigFailuresDTO(BaseModel):
    model_config = ConfigDict(extra="forbid")

    Failures: List[HostConfigFailureDTO]


class HostConfigErrorDTO(BaseModel):
    model_config = ConfigDict(extra="forbid")

    Error: str


HostConfigResponseDTO = Annotated[
    Union[HostConfigSuccessDTO, HostConfigFailuresDTO, HostConfigErrorDTO],
    Field(union_mode="left_to_right"),
]


class FormatErrorDTO(BaseModel):
    message: str
    severity: str = "error"
    note: Optional[str] = None
    path: Optional[str] = None
    start: Optional[int] = None
    end: Optional[int] = None


class FormatResultDTO(BaseModel):
    code: str
    errors: List[FormatErrorDTO] = []
