# =============================================================================
# Thread Index Tests
# =============================================================================

from zeroterm.core.message import Message
from zeroterm.core.threads import ThreadIndex, assign_thread_ids


def msg(id: str, sender: str, thread_id: str = "", **kwargs) -> Message:
    return Message(id=id, sender=sender, thread_id=thread_id, **kwargs)


class TestThreadIndex:
    def test_threads_cut_across_senders(self, scenario_messages):
        index = ThreadIndex.build(scenario_messages)
        t1 = index.get("T1")
        assert t1.message_ids == ("msg1", "msg2")
        assert t1.senders == {"a@x.com", "b@x.com"}
        assert t1.is_multi_participant
        assert index.thread_of("msg3").is_single_message
        assert len(index) == 2

    def test_message_without_thread_id_is_its_own_thread(self):
        index = ThreadIndex.build([msg("1", "a@x.com"), msg("2", "a@x.com")])
        assert index.thread_of("1").thread_id == "1"
        assert index.thread_of("2").thread_id == "2"

    def test_participants_other_than(self, scenario_messages):
        index = ThreadIndex.build(scenario_messages)
        assert index.participants_other_than("T1", "A@X.com") == {"b@x.com"}
        assert index.participants_other_than("T2", "a@x.com") == set()
        assert index.participants_other_than("missing", "a@x.com") == set()

    def test_messages_in(self, scenario_messages):
        index = ThreadIndex.build(scenario_messages)
        assert [m.id for m in index.messages_in("T1")] == ["msg1", "msg2"]
        assert index.messages_in("nope") == []

    def test_unknown_lookups(self, scenario_messages):
        index = ThreadIndex.build(scenario_messages)
        assert index.thread_of("nope") is None
        assert index.get("nope") is None
        assert not index.is_multi_participant("nope")
        assert "T1" in index


class TestAssignThreadIds:
    def test_links_replies_through_headers(self):
        messages = assign_thread_ids([
            msg("1", "alice@example.com", message_id="<a@example.com>"),
            msg("2", "me@example.com", message_id="<b@example.com>", in_reply_to="<a@example.com>"),
            msg("3", "alice@example.com", message_id="<c@example.com>",
                references=("<a@example.com>", "<b@example.com>")),
            msg("4", "other@example.com", message_id="<d@example.com>"),
        ])
        ids = {m.id: m.thread_id for m in messages}
        assert ids["1"] == ids["2"] == ids["3"] == "t:1"
        assert ids["4"] == "t:4"

    def test_links_through_a_missing_parent(self):
        # Both reply to a message that is not in the inbox
        messages = assign_thread_ids([
            msg("1", "a@x.com", message_id="<1@x>", in_reply_to="<root@x>"),
            msg("2", "b@x.com", message_id="<2@x>", references=("<root@x>",)),
        ])
        assert messages[0].thread_id == messages[1].thread_id

    def test_provider_thread_id_wins(self):
        messages = assign_thread_ids([
            msg("1", "a@x.com", thread_id="gm:42", message_id="<1@x>"),
            msg("2", "b@x.com", message_id="<2@x>", in_reply_to="<1@x>"),
        ])
        assert [m.thread_id for m in messages] == ["gm:42", "gm:42"]

    def test_message_ids_are_case_and_bracket_insensitive(self):
        messages = assign_thread_ids([
            msg("1", "a@x.com", message_id="<ABC@X>"),
            msg("2", "b@x.com", in_reply_to="abc@x"),
        ])
        assert messages[0].thread_id == messages[1].thread_id

    def test_keeps_input_order(self):
        messages = assign_thread_ids([msg("9", "a@x.com"), msg("3", "b@x.com")])
        assert [m.id for m in messages] == ["9", "3"]
