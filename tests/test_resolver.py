"""
Tests for AssociationResolver.

Tests cover:
- Company precedence: primary -> first associations entry -> legacy companyId
- Contacts from associations, falling back to legacy contactIds
- Identifier normalization for bare ids and id-bearing records
- De-duplication in first-seen order and malformed-entry counting
- Missing deal and missing associations yield empty results
"""

from deal_context.models import Deal
from deal_context.resolver import AssociationResolver, normalize_identifier


def _deal(**data) -> Deal:
    return Deal.model_validate({'id': 'deal_1', **data})


class TestNormalizeIdentifier:
    def test_bare_string(self):
        assert normalize_identifier('c1') == 'c1'

    def test_record_with_id(self):
        assert normalize_identifier({'id': 'c2', 'name': 'Acme'}) == 'c2'

    def test_strips_whitespace(self):
        assert normalize_identifier('  c3 ') == 'c3'

    def test_rejects_malformed(self):
        assert normalize_identifier('') is None
        assert normalize_identifier({'name': 'no id'}) is None
        assert normalize_identifier({'id': 42}) is None
        assert normalize_identifier(None) is None


class TestCompanyPrecedence:
    def test_primary_company_wins(self):
        deal = _deal(
            associations={'companies': ['c_first'], 'primaryCompanyId': 'c_primary'},
            companyId='c_legacy',
        )
        assert AssociationResolver().resolve(deal).company_id == 'c_primary'

    def test_first_associated_company_without_primary(self):
        deal = _deal(associations={'companies': [{'id': 'c_first'}, 'c_second']}, companyId='c_legacy')
        assert AssociationResolver().resolve(deal).company_id == 'c_first'

    def test_legacy_company_id_fallback(self):
        deal = _deal(companyId='c_legacy')
        assert AssociationResolver().resolve(deal).company_id == 'c_legacy'

    def test_no_company(self):
        resolved = AssociationResolver().resolve(_deal(name='Lonely deal'))
        assert resolved.company_id is None
        assert resolved.is_empty


class TestContacts:
    def test_associations_contacts_preferred(self):
        deal = _deal(associations={'contacts': ['a', 'b']}, contactIds=['legacy'])
        assert AssociationResolver().resolve(deal).contact_ids == ['a', 'b']

    def test_legacy_contacts_when_associations_empty(self):
        deal = _deal(associations={'contacts': []}, contactIds=['x', 'y'])
        assert AssociationResolver().resolve(deal).contact_ids == ['x', 'y']

    def test_legacy_contacts_when_associations_all_malformed(self):
        deal = _deal(associations={'contacts': [{'name': 'no id'}]}, contactIds=['x'])
        resolved = AssociationResolver().resolve(deal)
        assert resolved.contact_ids == ['x']
        assert resolved.dropped_entries == 1

    def test_dedup_keeps_first_seen_order(self):
        deal = _deal(associations={'contacts': ['b', {'id': 'a'}, 'b', 'a', 'c']})
        assert AssociationResolver().resolve(deal).contact_ids == ['b', 'a', 'c']


class TestMalformedEntries:
    def test_dropped_entries_counted_across_lists(self):
        deal = _deal(
            associations={
                'locations': ['l1', None, {'nope': 1}],
                'salespeople': ['', 's1'],
            }
        )
        resolved = AssociationResolver().resolve(deal)
        assert resolved.location_ids == ['l1']
        assert resolved.salesperson_ids == ['s1']
        assert resolved.dropped_entries == 3
        assert resolved.to_summary().dropped_entries == 3

    def test_single_entry_coerced_to_list(self):
        deal = _deal(associations={'contacts': 'solo'})
        assert AssociationResolver().resolve(deal).contact_ids == ['solo']


class TestEmptyInputs:
    def test_missing_deal(self):
        resolved = AssociationResolver().resolve(None)
        assert resolved.is_empty
        assert resolved.to_summary().total_associations == 0

    def test_resolve_entity_none(self):
        entity = AssociationResolver().resolve_entity(None)
        assert entity.companies == []
        assert entity.deals == []

    def test_resolve_entity_normalizes(self):
        deal = _deal(associations={'deals': [{'id': 'd1'}, 'd1', 'd2'], 'companies': ['c1']})
        entity = AssociationResolver().resolve_entity(deal.associations)
        assert entity.deals == ['d1', 'd2']
        assert entity.companies == ['c1']
