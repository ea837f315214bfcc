# =============================================================================
# Grouping Engine Tests
# =============================================================================

import pytest

from zeroterm.core.grouping import GroupMode, group_messages, grouping_key
from zeroterm.core.message import UNKNOWN_SENDER, Message


def msg(id: str, sender: str) -> Message:
    return Message(id=id, sender=sender)


INBOX = [
    msg("1", "Alice <alice@example.com>"),
    msg("2", "bob@company.com"),
    msg("3", "ALICE@example.com"),
    msg("4", "charlie@company.com"),
    msg("5", "no-at-sign"),
    msg("6", ""),
]


@pytest.mark.parametrize("mode", list(GroupMode))
def test_groups_partition_the_messages(mode):
    groups = group_messages(INBOX, mode)
    member_ids = [mid for group in groups for mid in group.message_ids]
    assert sorted(member_ids) == sorted(m.id for m in INBOX)
    assert len(member_ids) == len(set(member_ids))


def test_by_address_orders_by_first_appearance():
    groups = group_messages(INBOX, GroupMode.BY_ADDRESS)
    assert [g.key for g in groups] == [
        "alice@example.com",
        "bob@company.com",
        "charlie@company.com",
        "no-at-sign",
        UNKNOWN_SENDER,
    ]
    assert groups[0].message_ids == ("1", "3")


def test_by_domain_merges_colleagues():
    groups = group_messages(INBOX, GroupMode.BY_DOMAIN)
    by_key = {g.key: g for g in groups}
    assert by_key["company.com"].message_ids == ("2", "4")
    assert by_key["example.com"].count == 2


def test_malformed_sender_gets_its_own_group_and_a_warning(caplog):
    groups = group_messages(INBOX, GroupMode.BY_DOMAIN)
    assert any(g.key == "no-at-sign" and g.message_ids == ("5",) for g in groups)
    assert "Data quality" in caplog.text


def test_toggle_twice_is_identity():
    original = group_messages(INBOX, GroupMode.BY_ADDRESS)
    mode = GroupMode.BY_ADDRESS.toggled().toggled()
    assert group_messages(INBOX, mode) == original


def test_grouping_key():
    message = msg("1", "Bob <Bob@Company.com>")
    assert grouping_key(message, GroupMode.BY_ADDRESS) == "bob@company.com"
    assert grouping_key(message, GroupMode.BY_DOMAIN) == "company.com"


class TestGroupModeParse:
    @pytest.mark.parametrize("value", ["address", "email", "by-address", "By_Address"])
    def test_address(self, value):
        assert GroupMode.parse(value) is GroupMode.BY_ADDRESS

    @pytest.mark.parametrize("value", ["domain", "by-domain", "BY_DOMAIN"])
    def test_domain(self, value):
        assert GroupMode.parse(value) is GroupMode.BY_DOMAIN

    def test_unknown(self):
        with pytest.raises(ValueError):
            GroupMode.parse("subject")
