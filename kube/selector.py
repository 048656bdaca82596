'''
parser for kubernetes label-selectors in string-representation (as e.g. accepted by
`kubectl get --selector`), yielding the structured form (`matchLabels` / `matchExpressions`).

Supported requirements (separated by `,`):

    key=value, key==value   -> matchLabels
    key!=value              -> matchExpressions (NotIn)
    key in (v1, v2)         -> matchExpressions (In)
    key notin (v1, v2)      -> matchExpressions (NotIn)
    key                     -> matchExpressions (Exists)
    !key                    -> matchExpressions (DoesNotExist)
'''
import dataclasses
import enum
import re

_name_regex = re.compile(r'^([A-Za-z0-9][-A-Za-z0-9_.]*)?[A-Za-z0-9]$')
_dns_subdomain_regex = re.compile(r'^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$')

_requirement_regex = re.compile(
    r'''
    ^(?:
        !\s*(?P<absent_key>[^\s!=<>(),]+)
      | (?P<key>[^\s!=<>(),]+)
        (?:
            \s*(?P<operator>==|=|!=)\s*(?P<value>[^\s!=<>(),]*)
          | \s+(?P<set_operator>in|notin)\s*\((?P<values>[^()]*)\)
          | \s*(?P<comparison>[<>])\s*(?P<number>[^\s!=<>(),]*)
        )?
    )$
    ''',
    re.VERBOSE,
)

name_max_length = 63
prefix_max_length = 253


class LabelSelectorError(ValueError):
    pass


class Operator(enum.StrEnum):
    IN = 'In'
    NOT_IN = 'NotIn'
    EXISTS = 'Exists'
    DOES_NOT_EXIST = 'DoesNotExist'


@dataclasses.dataclass
class LabelSelectorRequirement:
    key: str
    operator: Operator
    values: list[str] = dataclasses.field(default_factory=list)

    def as_dict(self) -> dict:
        raw = {
            'key': self.key,
            'operator': str(self.operator),
        }
        if self.values:
            raw['values'] = list(self.values)
        return raw


@dataclasses.dataclass
class LabelSelector:
    match_labels: dict[str, str] = dataclasses.field(default_factory=dict)
    match_expressions: list[LabelSelectorRequirement] = dataclasses.field(default_factory=list)

    def __bool__(self):
        return bool(self.match_labels or self.match_expressions)

    def as_dict(self) -> dict:
        raw = {}
        if self.match_labels:
            raw['matchLabels'] = dict(self.match_labels)
        if self.match_expressions:
            raw['matchExpressions'] = [e.as_dict() for e in self.match_expressions]
        return raw


def validate_key(key: str):
    prefix, sep, name = key.rpartition('/')
    if sep:
        if not prefix:
            raise LabelSelectorError(f'{key=}: prefix part must be non-empty')
        if len(prefix) > prefix_max_length or not _dns_subdomain_regex.match(prefix):
            raise LabelSelectorError(f'{key=}: prefix part must be a valid DNS subdomain')

    if not name:
        raise LabelSelectorError(f'{key=}: name part must be non-empty')
    if len(name) > name_max_length:
        raise LabelSelectorError(
            f'{key=}: name part must be no more than {name_max_length} characters'
        )
    if not _name_regex.match(name):
        raise LabelSelectorError(
            f'{key=}: name part must consist of alphanumeric characters, "-", "_" or ".", and '
            'must start and end with an alphanumeric character'
        )


def validate_value(value: str):
    if not value:
        return
    if len(value) > name_max_length:
        raise LabelSelectorError(
            f'{value=}: must be no more than {name_max_length} characters'
        )
    if not _name_regex.match(value):
        raise LabelSelectorError(
            f'{value=}: must consist of alphanumeric characters, "-", "_" or ".", and must start '
            'and end with an alphanumeric character'
        )


def _split_requirements(selector: str):
    depth = 0
    current = []
    for c in selector:
        if c == '(':
            depth += 1
        elif c == ')':
            depth -= 1
            if depth < 0:
                raise LabelSelectorError(f'unbalanced parentheses in {selector=}')
        elif c == ',' and depth == 0:
            yield ''.join(current).strip()
            current = []
            continue
        current.append(c)

    if depth != 0:
        raise LabelSelectorError(f'unbalanced parentheses in {selector=}')
    yield ''.join(current).strip()


def parse(selector: str) -> LabelSelector:
    '''
    parses the given label-selector. An empty (or blank) selector yields an empty `LabelSelector`
    (which evaluates to `False`). Raises `LabelSelectorError` for malformed selectors.
    '''
    label_selector = LabelSelector()
    if not selector or not selector.strip():
        return label_selector

    for requirement in _split_requirements(selector):
        if not requirement:
            raise LabelSelectorError(f'found empty requirement in {selector=}')

        if not (match := _requirement_regex.match(requirement)):
            raise LabelSelectorError(f'unable to parse requirement: {requirement!r}')

        if (key := match.group('absent_key')):
            validate_key(key)
            label_selector.match_expressions.append(
                LabelSelectorRequirement(key=key, operator=Operator.DOES_NOT_EXIST)
            )
            continue

        key = match.group('key')
        validate_key(key)

        if (operator := match.group('operator')):
            value = match.group('value')
            validate_value(value)
            if operator == '!=':
                label_selector.match_expressions.append(
                    LabelSelectorRequirement(key=key, operator=Operator.NOT_IN, values=[value])
                )
            else:
                label_selector.match_labels[key] = value
        elif (set_operator := match.group('set_operator')):
            values = [v.strip() for v in match.group('values').split(',')]
            if values == ['']:
                raise LabelSelectorError(f'{key=}: for {set_operator!r}, values must be non-empty')
            for value in values:
                validate_value(value)
            label_selector.match_expressions.append(
                LabelSelectorRequirement(
                    key=key,
                    operator=Operator.IN if set_operator == 'in' else Operator.NOT_IN,
                    values=values,
                )
            )
        elif (comparison := match.group('comparison')):
            raise LabelSelectorError(f'{comparison!r} is not supported in label selectors')
        else:
            label_selector.match_expressions.append(
                LabelSelectorRequirement(key=key, operator=Operator.EXISTS)
            )

    return label_selector
