import collections.abc
import dataclasses
import enum

import jsonschema

import ocm


class ValidationType(enum.StrEnum):
    SCHEMA = 'schema'
    ARTEFACT_UNIQUENESS = 'artefact-uniqueness'


class ComponentDescriptorValidationError(ValueError):
    def __init__(self, errors: collections.abc.Sequence['ValidationError']):
        self.errors = tuple(errors)
        super().__init__('\n'.join(e.as_error_message for e in self.errors))


@dataclasses.dataclass(kw_only=True)
class ValidationResult:
    passed: bool
    component: ocm.Component
    type: ValidationType


@dataclasses.dataclass(kw_only=True)
class ValidationError(ValidationResult):
    error: str

    @property
    def as_error_message(self):
        return f'{self.component.name}:{self.component.version}: {self.error}'


def _check_schema(
    component_descriptor: ocm.ComponentDescriptor,
) -> ValidationResult:
    component = component_descriptor.component
    try:
        ocm.ComponentDescriptor.validate(
            component_descriptor_dict=component_descriptor.as_dict(),
        )
        return ValidationResult(
            passed=True,
            component=component,
            type=ValidationType.SCHEMA,
        )
    except jsonschema.ValidationError as ve:
        return ValidationError(
            passed=False,
            component=component,
            error=ve.message,
            type=ValidationType.SCHEMA,
        )


def _check_uniqueness(
    component: ocm.Component,
    artefacts: list[ocm.Artifact],
    kind: str,
) -> ValidationResult:
    duplicates = []
    seen_ids = set()

    for idx, a in enumerate(artefacts):
        aid = a.identity(artefacts)
        if aid in seen_ids:
            duplicates.append(f'{idx=}: {aid}')
        else:
            seen_ids.add(aid)

    if duplicates:
        return ValidationError(
            passed=False,
            component=component,
            error=f'Duplicate {kind}s: {", ".join(duplicates)}',
            type=ValidationType.ARTEFACT_UNIQUENESS,
        )
    return ValidationResult(
        passed=True,
        component=component,
        type=ValidationType.ARTEFACT_UNIQUENESS,
    )


def iter_results(
    component_descriptor: ocm.ComponentDescriptor,
) -> collections.abc.Iterable[ValidationResult]:
    yield _check_schema(component_descriptor=component_descriptor)

    component = component_descriptor.component
    yield _check_uniqueness(
        component=component,
        artefacts=component.sources,
        kind='source',
    )
    yield _check_uniqueness(
        component=component,
        artefacts=component.resources,
        kind='resource',
    )


def iter_violations(
    component_descriptor: ocm.ComponentDescriptor,
) -> collections.abc.Iterable[ValidationError]:
    for result in iter_results(component_descriptor=component_descriptor):
        if isinstance(result, ValidationError):
            yield result


def validate(
    component_descriptor: ocm.ComponentDescriptor,
):
    '''
    raises `ComponentDescriptorValidationError` listing all violations, if there are any
    '''
    errors = tuple(iter_violations(component_descriptor=component_descriptor))

    if errors:
        raise ComponentDescriptorValidationError(errors)
