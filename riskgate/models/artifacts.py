"""Test pattern and generated test artifact models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Set

from dataclasses_json import DataClassJsonMixin

# Type aliases
StructureType = Literal['pom', 'flat', 'feature-based', 'unknown']
ExampleType = Literal['test', 'page', 'util', 'fixture', 'config']
ArtifactKind = Literal['unit', 'integration', 'e2e', 'api', 'page', 'util', 'test']


@dataclass(slots=True)
class TestStructure(DataClassJsonMixin):
    """Directory layout of a repository's tests."""

    type: StructureType
    tests_dir: str
    pages_dir: Optional[str] = None
    utils_dir: Optional[str] = None
    fixtures_dir: Optional[str] = None


def default_pom_structure() -> TestStructure:
    """Layout used when a repository has no recognizable tests."""
    return TestStructure(
        type='pom',
        tests_dir='e2e/tests',
        pages_dir='e2e/pages',
        utils_dir='e2e/utils',
        fixtures_dir='e2e/fixtures',
    )


@dataclass(slots=True)
class TestExample(DataClassJsonMixin):
    """An existing file used as a generation exemplar."""

    path: str
    content: str
    type: ExampleType


@dataclass(slots=True)
class TestPattern(DataClassJsonMixin):
    """Detected test framework and layout of a repository."""

    detected: bool = False
    framework: str = 'unknown'
    structure: TestStructure = field(default_factory=default_pom_structure)
    examples: List[TestExample] = field(default_factory=list)
    config_file: Optional[str] = None

    @property
    def structure_type(self) -> StructureType:
        return self.structure.type

    @property
    def directories(self) -> Dict[str, Optional[str]]:
        return {
            'tests': self.structure.tests_dir,
            'pages': self.structure.pages_dir,
            'utils': self.structure.utils_dir,
        }


@dataclass(slots=True)
class ValidationWarning(DataClassJsonMixin):
    message: str
    suggestion: Optional[str] = None


@dataclass(slots=True)
class ValidationError(DataClassJsonMixin):
    message: str
    line: Optional[int] = None
    column: Optional[int] = None


@dataclass(slots=True)
class ValidationReport(DataClassJsonMixin):
    """Outcome of syntax-validating one artifact."""

    valid: bool
    errors: List[ValidationError] = field(default_factory=list)
    warnings: List[ValidationWarning] = field(default_factory=list)


@dataclass(slots=True)
class GeneratedTestArtifact(DataClassJsonMixin):
    """A candidate test file produced by generation."""

    id: str
    filename: str
    framework: str
    kind: ArtifactKind
    code: str
    dependencies: Set[str] = field(default_factory=set)
    validation: Optional[ValidationReport] = None

    def __post_init__(self) -> None:
        """Validate artifact data after initialization."""
        if not self.id:
            raise ValueError("Artifact ID cannot be empty")
        if not self.filename:
            raise ValueError("Filename cannot be empty")

    def attach_validation(self, report: ValidationReport) -> None:
        """Attach the validation result; allowed exactly once."""
        if self.validation is not None:
            raise ValueError(f"Validation already attached to {self.filename}")
        self.validation = report

    @property
    def is_valid(self) -> bool:
        return self.validation is None or self.validation.valid

    @property
    def has_warnings(self) -> bool:
        return bool(self.validation and self.validation.warnings)

    def to_dict(self, encode_json: bool = False) -> Dict[str, Any]:
        """Convert artifact to a JSON-safe dictionary."""
        return {
            'id': self.id,
            'filename': self.filename,
            'framework': self.framework,
            'kind': self.kind,
            'code': self.code,
            'dependencies': sorted(self.dependencies),
            'validation': self.validation.to_dict() if self.validation else None,
        }


@dataclass(slots=True)
class ValidationSummary(DataClassJsonMixin):
    total_tests: int = 0
    valid_tests: int = 0
    invalid_tests: int = 0


@dataclass(slots=True)
class TestGenerationResult:
    """Valid artifacts plus the pattern and counts they came from."""

    artifacts: List[GeneratedTestArtifact]
    pattern: TestPattern
    validation_summary: ValidationSummary
