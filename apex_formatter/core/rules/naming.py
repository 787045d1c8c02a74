"""
Naming Rules

Casing and vocabulary conventions for classes, variables, methods and
constants. Naming rules only report; renaming is never applied
automatically.
"""

import re
from typing import Iterable, List, Optional, Tuple

from ..diagnostics import Diagnostic
from ..lexer import Token
from ..tree import Node, NodeKind, Span
from .base import Rule, RuleCategory, RuleContext

CLASS_SUFFIXES = (
    'TriggerHandler', 'WebService', 'Controller', 'Extension', 'Exception',
    'Interface', 'Schedule', 'Batch', 'Test',
)

# Abbreviated or non-standard endings -> canonical suffix
SUFFIX_ABBREVIATIONS = {
    'Ctrl': 'Controller',
    'Ctlr': 'Controller',
    'Cntrl': 'Controller',
    'Cont': 'Controller',
    'Con': 'Controller',
    'Ext': 'Extension',
    'Extn': 'Extension',
    'Sched': 'Schedule',
    'Sch': 'Schedule',
    'Scheduler': 'Schedule',
    'Schedulable': 'Schedule',
    'Ws': 'WebService',
    'WS': 'WebService',
    'Exc': 'Exception',
    'Ex': 'Exception',
    'Err': 'Exception',
    'Error': 'Exception',
    'Intf': 'Interface',
    'Iface': 'Interface',
    'Tests': 'Test',
    'Tst': 'Test',
    'Handler': 'TriggerHandler',
}

PRIMITIVE_TYPES = frozenset({
    'blob', 'boolean', 'date', 'datetime', 'decimal', 'double', 'id', 'integer',
    'long', 'object', 'string', 'time',
})

METHOD_VERBS = frozenset({
    'abort', 'accept', 'activate', 'add', 'after', 'aggregate', 'allow', 'append',
    'apply', 'approve', 'archive', 'as', 'assert', 'assign', 'attach', 'authenticate',
    'authorize', 'before', 'build', 'bulkify', 'cache', 'calculate', 'call', 'can',
    'cancel', 'check', 'clean', 'clear', 'clone', 'close', 'collect', 'combine',
    'compare', 'compile', 'complete', 'compose', 'compute', 'configure', 'confirm',
    'connect', 'construct', 'consume', 'contains', 'convert', 'copy', 'count',
    'create', 'deactivate', 'decode', 'decrypt', 'delete', 'deliver', 'describe',
    'deserialize', 'detach', 'determine', 'disable', 'dispatch', 'display', 'do',
    'download', 'emit', 'enable', 'encode', 'encrypt', 'enqueue', 'ensure',
    'enrich', 'equals', 'evaluate', 'execute', 'expand', 'export', 'extract', 'fetch',
    'fill', 'filter', 'find', 'finish', 'fire', 'flag', 'flush', 'format',
    'generate', 'get', 'go', 'grant', 'group', 'handle', 'has', 'hash', 'hide',
    'identify', 'import', 'increment', 'init', 'initialize', 'insert', 'invoke',
    'is', 'join', 'link', 'list', 'load', 'lock', 'log', 'lookup', 'make', 'map',
    'mark', 'match', 'merge', 'migrate', 'move', 'navigate', 'normalize',
    'notify', 'on', 'open', 'parse', 'perform', 'persist', 'populate', 'post',
    'prepare', 'print', 'process', 'publish', 'purge', 'push', 'put', 'query',
    'queue', 'read', 'rebuild', 'recalculate', 'receive', 'record', 'redirect',
    'refresh', 'register', 'reject', 'release', 'reload', 'remove', 'render',
    'reopen', 'replace', 'request', 'require', 'reset', 'resolve', 'restore',
    'retrieve', 'retry', 'return', 'revert', 'run', 'sanitize', 'save',
    'schedule', 'search', 'select', 'send', 'serialize', 'set', 'setup',
    'should', 'show', 'skip', 'sort', 'split', 'start', 'stop', 'store',
    'submit', 'subscribe', 'sum', 'summarize', 'sync', 'test', 'throw', 'to', 'toggle',
    'track', 'transfer', 'transform', 'translate', 'trigger', 'truncate', 'try',
    'undelete', 'unlock', 'unsubscribe', 'update', 'upload', 'upsert', 'use',
    'validate', 'verify', 'view', 'wrap', 'write',
})

NON_PLURAL_ENDINGS = ('ss', 'us', 'is', 'ics', 'news', 'series', 'status')

_UPPER_CAMEL_RE = re.compile(r'^[A-Z][a-zA-Z0-9]*$')
_LOWER_CAMEL_RE = re.compile(r'^[a-z][a-zA-Z0-9]*$')
_UPPER_SNAKE_RE = re.compile(r'^[A-Z][A-Z0-9]*(?:_[A-Z0-9]+)*$')
_WORD_RE = re.compile(r'[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+')


def split_words(name: str) -> List[str]:
    """Split an identifier on underscores and case boundaries."""
    words = []
    for chunk in name.split('_'):
        words.extend(_WORD_RE.findall(chunk))
    return words


def lower_first(text: str) -> str:
    return text[:1].lower() + text[1:]


def upper_first(text: str) -> str:
    return text[:1].upper() + text[1:]


def to_camel(name: str, upper: bool = False) -> str:
    words = split_words(name)
    if not words:
        return name
    if all(word.isupper() for word in words if word.isalpha()):
        words = [word.lower() for word in words]
    camel = ''.join(upper_first(word) for word in words)
    return camel if upper else lower_first(camel)


def to_upper_snake(name: str) -> str:
    return '_'.join(word.upper() for word in split_words(name))


def is_plural(word: str) -> bool:
    lowered = word.lower()
    return len(lowered) > 2 and lowered.endswith('s') and not lowered.endswith(NON_PLURAL_ENDINGS)


def singularize(word: str) -> str:
    if not is_plural(word):
        return word
    if word.lower().endswith('ies'):
        return word[:-3] + ('Y' if word[-3:].isupper() else 'y')
    if word.lower().endswith(('ses', 'xes', 'zes', 'ches', 'shes')):
        return word[:-2]
    return word[:-1]


def singularize_last_word(name: str) -> str:
    words = split_words(name)
    if not words:
        return name
    last = words[-1]
    position = name.rfind(last)
    return name[:position] + singularize(last)


def simple_type_name(type_ref: str) -> str:
    """Readable single-word name of a type, e.g. List<Contact> -> ContactList."""
    collection, arguments = split_generic(type_ref)
    if type_ref.endswith('[]'):
        return simple_type_name(type_ref[:-2]) + 'List'
    if collection and arguments:
        if collection == 'map':
            return 'Map'
        return simple_type_name(arguments[0]) + upper_first(collection)
    name = type_ref.split('.')[-1]
    if name.lower().endswith('__c'):
        name = name[:-3]
    return upper_first(name.replace('_', ''))


def split_generic(type_ref: str) -> Tuple[Optional[str], List[str]]:
    """
    Split ``Outer<A, B<C, D>>`` into ('outer', ['A', 'B<C, D>']).

    Returns (None, []) for non-generic types.
    """
    start = type_ref.find('<')
    if start == -1 or not type_ref.endswith('>'):
        return None, []
    outer = type_ref[:start].split('.')[-1].lower()
    inner = type_ref[start + 1:-1]
    arguments, depth, current = [], 0, ''
    for char in inner:
        if char == '<':
            depth += 1
        elif char == '>':
            depth -= 1
        if char == ',' and depth == 0:
            arguments.append(current.strip())
            current = ''
            continue
        current += char
    if current.strip():
        arguments.append(current.strip())
    return outer, arguments


def collection_suffix(type_ref: Optional[str]) -> Optional[str]:
    """'List' or 'Set' for collection-typed declarations, otherwise None."""
    if not type_ref:
        return None
    if type_ref.endswith('[]'):
        return 'List'
    outer, arguments = split_generic(type_ref)
    if outer == 'list' and arguments:
        return 'List'
    if outer == 'set' and arguments:
        return 'Set'
    return None


def declared_names(node: Node) -> Iterable[Tuple[str, Optional[str], Token]]:
    """(name, type, token) for variables, non-constant fields and parameters."""
    if node.kind == NodeKind.METHOD_DECL:
        for parameter in node.parameters:
            yield parameter.name, parameter.type_ref, parameter.name_token
    elif node.kind == NodeKind.VARIABLE_DECL or (node.kind == NodeKind.FIELD_DECL and not node.is_constant):
        for token in node.declarators:
            yield token.lexeme, node.type_ref, token


def _owned_elsewhere(name: str) -> bool:
    """Misplaced or plural Test/Controller words."""
    words = split_words(name)
    if not words:
        return False
    owned = ('Test', 'Tests', 'Controller', 'Controllers')
    return any(word in owned for word in words[:-1]) or words[-1] in ('Tests', 'Controllers')


def _name_span(node: Node) -> Span:
    if node.declarators:
        return Span.of_token(node.declarators[0])
    return node.span


class ClassNameRule(Rule):
    """Class names are CamelCase singular nouns ending with a class-type suffix."""
    id = 'class-name'
    description = 'Class names are CamelCase, singular-noun based and end with a recognized class-type suffix'
    category = RuleCategory.NAMING
    applies_to = frozenset({NodeKind.CLASS_DECL, NodeKind.INTERFACE_DECL})

    def check(self, node: Node, context: RuleContext) -> Iterable[Diagnostic]:
        if node.keyword in ('enum', 'trigger') or not node.name:
            return
        # test and controller names are checked by their own rules
        if node.is_test or _owned_elsewhere(node.name):
            return

        problems: List[str] = []
        name = node.name
        if not _UPPER_CAMEL_RE.match(name):
            problems.append("is not CamelCase")
            name = to_camel(name, upper=True)

        top_level = node.parent is not None and node.parent.kind == NodeKind.COMPILATION_UNIT
        if top_level:
            suffix = next((s for s in CLASS_SUFFIXES if name.endswith(s) and len(name) > len(s)), None)
            if suffix is None:
                problems.append(f"does not end with a recognized suffix ({', '.join(CLASS_SUFFIXES)})")
                fixed = self._suggest_suffix(name, node)
                if fixed is not None:
                    suffix = next(s for s in CLASS_SUFFIXES if fixed.endswith(s))
                    name = fixed
            if suffix is not None:
                stem = name[:-len(suffix)]
                words = split_words(stem)
                if words and is_plural(words[-1]):
                    problems.append("should be based on a singular noun")
                    name = singularize_last_word(stem) + suffix

        if problems:
            suggestion = name if name != node.name and _UPPER_CAMEL_RE.match(name) else None
            yield self.report(context, _name_span(node),
                              f"class name '{node.name}' {' and '.join(problems)}", suggestion)

    @staticmethod
    def _suggest_suffix(name: str, node: Node) -> Optional[str]:
        for abbreviation in sorted(SUFFIX_ABBREVIATIONS, key=len, reverse=True):
            if name.endswith(abbreviation) and len(name) > len(abbreviation):
                stem = name[:-len(abbreviation)]
                if stem[-1].islower() or stem[-1].isdigit() or abbreviation.isupper():
                    return stem + SUFFIX_ABBREVIATIONS[abbreviation]
        if node.kind == NodeKind.INTERFACE_DECL:
            return name + 'Interface'
        if node.extends and node.extends.split('.')[-1].lower() == 'exception':
            return name + 'Exception'
        return None


class TestClassNameRule(Rule):
    """Test classes are named ``<SubjectClassName>Test``."""
    id = 'test-class-name'
    description = 'Test class names equal <SubjectClassName>Test'
    category = RuleCategory.NAMING
    applies_to = frozenset({NodeKind.CLASS_DECL})

    def check(self, node: Node, context: RuleContext) -> Iterable[Diagnostic]:
        if node.keyword != 'class' or not node.name:
            return
        name = node.name
        words = split_words(name)
        looks_like_test = node.is_test or 'Test' in words or 'Tests' in words
        if not looks_like_test:
            return

        subject_words = [w for w in words if w not in ('Test', 'Tests', 'Class')]
        subject = ''.join(upper_first(w) for w in subject_words)
        expected = subject + 'Test'
        if name == expected and subject:
            return
        if not subject:
            yield self.report(context, _name_span(node),
                              f"test class '{name}' does not name the class under test")
            return
        yield self.report(context, _name_span(node),
                          f"test class '{name}' should be named after its subject as '{expected}'", expected)


class ControllerClassNameRule(Rule):
    """Controller classes are named ``<PageName>Controller``."""
    id = 'controller-class-name'
    description = 'Controller class names equal <PageName>Controller'
    category = RuleCategory.NAMING
    applies_to = frozenset({NodeKind.CLASS_DECL})

    def check(self, node: Node, context: RuleContext) -> Iterable[Diagnostic]:
        if node.keyword != 'class' or not node.name:
            return
        words = split_words(node.name)
        if not any(w in ('Controller', 'Controllers') for w in words):
            return
        page_words = [w for w in words if w not in ('Controller', 'Controllers')]
        page = ''.join(upper_first(w) for w in page_words)
        expected = page + 'Controller'
        if not page:
            yield self.report(context, _name_span(node),
                              f"controller class '{node.name}' does not name its page")
        elif node.name != expected:
            yield self.report(context, _name_span(node),
                              f"controller class '{node.name}' should be named '{expected}'", expected)


class VariableNameRule(Rule):
    """Variables, fields and parameters are camelCase."""
    id = 'variable-name'
    description = 'Variable, field and parameter names are camelCase'
    category = RuleCategory.NAMING
    applies_to = frozenset({NodeKind.VARIABLE_DECL, NodeKind.FIELD_DECL, NodeKind.METHOD_DECL})

    def check(self, node: Node, context: RuleContext) -> Iterable[Diagnostic]:
        for name, _, token in declared_names(node):
            if not _LOWER_CAMEL_RE.match(name):
                yield self.report(context, Span.of_token(token),
                                  f"variable name '{name}' is not camelCase", to_camel(name))


class CollectionVariableNameRule(Rule):
    """Collections are named ``<singularRole>List`` / ``<singularRole>Set``."""
    id = 'collection-variable-name'
    description = 'Collection variables end with their collection kind and use a singular root'
    category = RuleCategory.NAMING
    applies_to = frozenset({NodeKind.VARIABLE_DECL, NodeKind.FIELD_DECL, NodeKind.METHOD_DECL})

    def check(self, node: Node, context: RuleContext) -> Iterable[Diagnostic]:
        for name, type_ref, token in declared_names(node):
            suffix = collection_suffix(type_ref)
            if suffix is None:
                continue
            span = Span.of_token(token)
            if name.endswith(suffix) and len(name) > len(suffix):
                root = name[:-len(suffix)]
                if is_plural(split_words(root)[-1] if split_words(root) else root):
                    expected = lower_first(singularize_last_word(root)) + suffix
                    yield self.report(context, span,
                                      f"collection '{name}' should use a singular root, e.g. '{expected}'", expected)
                continue

            if split_words(name) and is_plural(split_words(name)[-1]):
                root = singularize_last_word(name)
            else:
                element = type_ref[:-2] if type_ref.endswith('[]') else split_generic(type_ref)[1][0]
                root = simple_type_name(element)
            expected = lower_first(root) + suffix
            yield self.report(context, span, f"collection '{name}' should end with '{suffix}', e.g. '{expected}'",
                              expected)


class MapVariableNameRule(Rule):
    """Maps are named ``<key>To<Value>Map`` unless keyed by Id to the record itself."""
    id = 'map-variable-name'
    description = 'Map variables are named <key>To<Value>Map, or <record>Map for Id-keyed record maps'
    category = RuleCategory.NAMING
    applies_to = frozenset({NodeKind.VARIABLE_DECL, NodeKind.FIELD_DECL, NodeKind.METHOD_DECL})

    _KEY_TO_VALUE_RE = re.compile(r'^[a-z][A-Za-z0-9]*To[A-Z][A-Za-z0-9]*Map$')

    def check(self, node: Node, context: RuleContext) -> Iterable[Diagnostic]:
        for name, type_ref, token in declared_names(node):
            outer, arguments = split_generic(type_ref or '')
            if outer != 'map' or len(arguments) != 2:
                continue
            key, value = arguments
            keyed_by_id = key.lower() == 'id' and split_generic(value)[0] is None \
                and value.lower() not in PRIMITIVE_TYPES
            if self._KEY_TO_VALUE_RE.match(name):
                continue
            if keyed_by_id and name.endswith('Map') and _LOWER_CAMEL_RE.match(name) and len(name) > 3:
                continue
            if keyed_by_id:
                expected = lower_first(simple_type_name(value)) + 'Map'
            else:
                expected = lower_first(simple_type_name(key)) + 'To' + simple_type_name(value) + 'Map'
            yield self.report(context, Span.of_token(token),
                              f"map '{name}' should be named '<key>To<Value>Map', e.g. '{expected}'", expected)


class MethodNameRule(Rule):
    """Methods are lowerCamelCase verbs; get/set prefixes are reserved for accessors."""
    id = 'method-name'
    description = 'Method names are lowerCamelCase, start with a verb, and reserve get/set for accessors'
    category = RuleCategory.NAMING
    applies_to = frozenset({NodeKind.METHOD_DECL})

    def check(self, node: Node, context: RuleContext) -> Iterable[Diagnostic]:
        if node.is_constructor or not node.name:
            return
        problems: List[str] = []
        name = node.name
        if not _LOWER_CAMEL_RE.match(name):
            problems.append("is not lowerCamelCase")
            name = to_camel(name)

        words = split_words(name)
        first = words[0].lower() if words else ''
        rest = name[len(words[0]):] if words else ''
        returns_value = node.type_ref is not None and node.type_ref.lower() != 'void'
        in_test = node.is_test or (node.parent is not None and node.parent.is_test)

        if first not in METHOD_VERBS and not in_test:
            problems.append("should start with a verb")
        elif first == 'get' and (node.parameters or not returns_value):
            problems.append("uses the 'get' prefix but is not a getter")
            name = 'retrieve' + rest
        elif first == 'set' and (len(node.parameters) != 1 or returns_value):
            problems.append("uses the 'set' prefix but is not a single-argument void setter")
            name = 'assign' + rest

        if problems:
            suggestion = name if name != node.name else None
            yield self.report(context, _name_span(node),
                              f"method name '{node.name}' {' and '.join(problems)}", suggestion)


class ConstantNameRule(Rule):
    """static final fields are UPPER_SNAKE_CASE."""
    id = 'constant-name'
    description = 'Constants (static final fields) are UPPER_SNAKE_CASE'
    category = RuleCategory.NAMING
    applies_to = frozenset({NodeKind.FIELD_DECL})

    def check(self, node: Node, context: RuleContext) -> Iterable[Diagnostic]:
        if not node.is_constant:
            return
        for token in node.declarators:
            if not _UPPER_SNAKE_RE.match(token.lexeme):
                yield self.report(context, Span.of_token(token),
                                  f"constant '{token.lexeme}' is not UPPER_SNAKE_CASE", to_upper_snake(token.lexeme))
