"""
Unit tests for the naming rules.

These tests cover:
- Class, test class and controller class names
- Variable, collection and map names
- Method and constant names
- Name helper functions
"""

import pytest

from apex_formatter.core.config import LintConfig
from apex_formatter.core.scanner import StyleScanner
from apex_formatter.core.rules.naming import (
    split_words, to_camel, to_upper_snake, is_plural, singularize, simple_type_name, split_generic
)

NAMING_RULES = frozenset({
    'class-name', 'test-class-name', 'controller-class-name', 'variable-name',
    'collection-variable-name', 'map-variable-name', 'method-name', 'constant-name',
})


def lint(source, rules=NAMING_RULES):
    scanner = StyleScanner(LintConfig(active_rules=frozenset(rules)))
    return scanner.lint_source(source, 'Sample.cls').diagnostics


def in_class(body, name='OpportunityTriggerHandler'):
    return f"public class {name} {{\n{body}}}\n"


class TestHelpers:
    """Test the naming helpers."""

    def test_split_words(self):
        """Identifiers split on case changes, acronyms and underscores."""
        assert split_words('HomePageCtrl') == ['Home', 'Page', 'Ctrl']
        assert split_words('parseXMLFile') == ['parse', 'XML', 'File']
        assert split_words('MAX_ROW_COUNT') == ['MAX', 'ROW', 'COUNT']

    def test_case_conversions(self):
        """Names convert between camelCase and UPPER_SNAKE_CASE."""
        assert to_camel('Total_Count') == 'totalCount'
        assert to_camel('account_service', upper=True) == 'AccountService'
        assert to_camel('MAX_SIZE') == 'maxSize'
        assert to_upper_snake('maxSize') == 'MAX_SIZE'

    def test_plurals(self):
        """Plural detection ignores common singular endings."""
        assert is_plural('Accounts')
        assert not is_plural('Address')
        assert not is_plural('Status')
        assert singularize('Opportunities') == 'Opportunity'
        assert singularize('Boxes') == 'Box'
        assert singularize('Ids') == 'Id'

    def test_types(self):
        """Generic types split into collection and arguments."""
        assert split_generic('Map<Id, List<Account>>') == ('map', ['Id', 'List<Account>'])
        assert split_generic('String') == (None, [])
        assert simple_type_name('List<Contact>') == 'ContactList'
        assert simple_type_name('Invoice_Line__c') == 'InvoiceLine'


class TestClassName:
    """Test the class-name rule."""

    def test_abbreviated_suffix(self):
        """HomePageCtrl is reported with HomePageController as the fix."""
        diagnostics = lint("public class HomePageCtrl {\n}\n")
        assert len(diagnostics) == 1
        assert diagnostics[0].rule_id == 'class-name'
        assert diagnostics[0].fix_suggestion == 'HomePageController'
        assert (diagnostics[0].line, diagnostics[0].column) == (1, 14)

    def test_conforming_name(self):
        """OpportunityTriggerHandler is clean."""
        assert lint("public class OpportunityTriggerHandler {\n}\n") == []

    def test_missing_suffix(self):
        """A name with no recognized suffix is reported without a guess."""
        diagnostics = lint("public class AccountManager {\n}\n")
        assert len(diagnostics) == 1
        assert 'suffix' in diagnostics[0].message
        assert diagnostics[0].fix_suggestion is None

    def test_plural_stem(self):
        """Suffixed names use a singular noun."""
        diagnostics = lint("public class AccountsController {\n}\n")
        assert [d.rule_id for d in diagnostics] == ['class-name']
        assert diagnostics[0].fix_suggestion == 'AccountController'

    def test_not_camel_case(self):
        """Snake case class names are reported."""
        diagnostics = lint("public class account_service_batch {\n}\n", {'class-name'})
        assert len(diagnostics) == 1
        assert 'CamelCase' in diagnostics[0].message
        assert diagnostics[0].fix_suggestion == 'AccountServiceBatch'

    def test_interface_suffix(self):
        """Interfaces get Interface appended."""
        diagnostics = lint("public interface Payable {\n}\n")
        assert diagnostics[0].fix_suggestion == 'PayableInterface'

    def test_exception_suffix(self):
        """Exception subclasses get Exception appended or substituted."""
        assert lint("public class PaymentFailure extends Exception {\n}\n")[0].fix_suggestion == \
            'PaymentFailureException'
        assert lint("public class PaymentError extends Exception {\n}\n")[0].fix_suggestion == \
            'PaymentException'

    def test_inner_classes_need_no_suffix(self):
        """Only top-level classes are checked for a suffix."""
        assert lint(in_class("    public class Wrapper {\n    }\n")) == []

    def test_enums_and_triggers_skipped(self):
        """Enums and triggers are not class names."""
        assert lint("public enum Season { WINTER }\n") == []
        assert lint("trigger AccountTrigger on Account (before insert) {\n}\n") == []


class TestTestAndControllerNames:
    """Test the test-class-name and controller-class-name rules."""

    def test_test_prefix(self):
        """Test classes end with Test instead of starting with it."""
        diagnostics = lint("@IsTest\nprivate class TestAccountService {\n}\n")
        assert [d.rule_id for d in diagnostics] == ['test-class-name']
        assert diagnostics[0].fix_suggestion == 'AccountServiceTest'

    def test_plural_tests(self):
        """Tests becomes Test."""
        diagnostics = lint("@IsTest\nprivate class AccountServiceTests {\n}\n")
        assert [d.fix_suggestion for d in diagnostics] == ['AccountServiceTest']

    def test_conforming_test_class(self):
        """<Subject>Test is clean, including test methods without verbs."""
        source = ("@IsTest\nprivate class AccountServiceTest {\n"
                  "    @IsTest\n    static void bulkInsertCreatesContacts() {\n    }\n}\n")
        assert lint(source) == []

    def test_controller_word_order(self):
        """Controller goes last."""
        diagnostics = lint("public class ControllerHomePage {\n}\n")
        assert [d.rule_id for d in diagnostics] == ['controller-class-name']
        assert diagnostics[0].fix_suggestion == 'HomePageController'

    def test_controller_without_page(self):
        """A bare Controller does not name its page."""
        diagnostics = lint("public class Controller {\n}\n", {'controller-class-name'})
        assert len(diagnostics) == 1
        assert diagnostics[0].fix_suggestion is None


class TestVariableNames:
    """Test variable, collection and map naming."""

    def test_snake_case_variable(self):
        """Locals are camelCase."""
        source = in_class("    public void run() {\n        Integer Total_Count = 0;\n    }\n")
        diagnostics = lint(source)
        assert [(d.rule_id, d.fix_suggestion) for d in diagnostics] == [('variable-name', 'totalCount')]

    def test_parameters_checked(self):
        """Parameters are camelCase too."""
        source = in_class("    public void run(String Account_Name) {\n    }\n")
        assert [d.fix_suggestion for d in lint(source, {'variable-name'})] == ['accountName']

    def test_constants_not_treated_as_variables(self):
        """static final fields are left to the constant rule."""
        source = in_class("    private static final Integer MAX_SIZE = 10;\n")
        assert lint(source) == []

    def test_plural_collection(self):
        """A plural list name becomes <singular>List."""
        source = in_class("    private List<Account> accounts;\n")
        diagnostics = lint(source)
        assert [(d.rule_id, d.fix_suggestion) for d in diagnostics] == [
            ('collection-variable-name', 'accountList')]

    def test_plural_root_before_suffix(self):
        """The root before the suffix is singular."""
        source = in_class("    private Set<Id> accountIdsSet;\n")
        assert [d.fix_suggestion for d in lint(source)] == ['accountIdSet']

    def test_array_named_from_element(self):
        """Arrays are lists named after their element type."""
        source = in_class("    private Contact[] people;\n")
        assert [d.fix_suggestion for d in lint(source)] == ['contactList']

    def test_conforming_collections(self):
        """Suffixed singular collections are clean."""
        source = in_class("    private List<Contact> contactList;\n    private Set<Id> accountIdSet;\n")
        assert lint(source) == []

    def test_map_names(self):
        """Maps are <key>To<Value>Map unless keyed by record Id."""
        source = in_class(
            "    private Map<Id, Account> accountMap;\n"
            "    private Map<String, Integer> nameToCountMap;\n"
            "    private Map<String, Account> accounts;\n")
        diagnostics = lint(source)
        assert [(d.rule_id, d.fix_suggestion) for d in diagnostics] == [
            ('map-variable-name', 'stringToAccountMap')]


class TestMethodAndConstantNames:
    """Test method-name and constant-name."""

    def test_upper_case_method(self):
        """Methods are lowerCamelCase."""
        diagnostics = lint(in_class("    public void Process() {\n    }\n"))
        assert [(d.rule_id, d.fix_suggestion) for d in diagnostics] == [('method-name', 'process')]

    def test_method_without_verb(self):
        """Methods start with a verb."""
        diagnostics = lint(in_class("    public void accountHandler() {\n    }\n"))
        assert len(diagnostics) == 1
        assert 'verb' in diagnostics[0].message

    def test_get_prefix_reserved_for_getters(self):
        """get with parameters suggests retrieve."""
        diagnostics = lint(in_class("    public Account getAccount(Id accountId) {\n        return null;\n    }\n"))
        assert [d.fix_suggestion for d in diagnostics] == ['retrieveAccount']

    def test_set_prefix_reserved_for_setters(self):
        """set returning a value suggests assign."""
        diagnostics = lint(in_class("    public Boolean setOwner(Id ownerId) {\n        return true;\n    }\n"))
        assert [d.fix_suggestion for d in diagnostics] == ['assignOwner']

    def test_accessors_and_constructors_clean(self):
        """Real getters, setters and constructors are accepted."""
        source = in_class(
            "    public OpportunityTriggerHandler() {\n    }\n\n"
            "    public String getName() {\n        return null;\n    }\n\n"
            "    public void setName(String value) {\n    }\n")
        assert lint(source) == []

    def test_constant_case(self):
        """Constants are UPPER_SNAKE_CASE."""
        diagnostics = lint(in_class("    public static final Integer maxSize = 10;\n"))
        assert [(d.rule_id, d.fix_suggestion) for d in diagnostics] == [('constant-name', 'MAX_SIZE')]

    def test_naming_rules_never_fix(self):
        """Naming diagnostics carry no edits."""
        diagnostics = lint("public class HomePageCtrl {\n    public void Process() {\n    }\n}\n")
        assert diagnostics
        assert all(d.edits == () for d in diagnostics)


if __name__ == '__main__':
    pytest.main([__file__])
