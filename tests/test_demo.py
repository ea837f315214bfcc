# =============================================================================
# Demo Mailbox Tests
# =============================================================================

import pytest

from zeroterm.core.grouping import GroupMode, group_messages
from zeroterm.core.operations import Operation, OperationKind
from zeroterm.core.threads import ThreadIndex
from zeroterm.mail.demo import DemoMailbox, demo_messages
from zeroterm.mail.port import PartialFailure, TransportError, run_operation


class TestDemoMessages:
    def test_ids_are_unique(self):
        ids = [m.id for m in demo_messages()]
        assert len(ids) == len(set(ids)) == 17

    def test_every_message_has_a_thread(self):
        assert all(m.thread_id for m in demo_messages())

    def test_coffee_thread(self):
        index = ThreadIndex.build(demo_messages())
        thread = index.get("t:demo_6")
        assert set(thread.message_ids) == {"demo_6", "demo_7", "demo_sent_1"}
        assert thread.senders == {"alice@example.com", "demo@example.com"}

    def test_q4_thread_has_three_participants(self):
        index = ThreadIndex.build(demo_messages())
        thread = index.get("t:demo_14")
        assert set(thread.message_ids) == {"demo_14", "demo_15", "demo_sent_2"}
        assert len(thread.senders) == 3

    def test_domain_grouping_merges_colleagues(self):
        groups = {g.key: g for g in group_messages(demo_messages(), GroupMode.BY_DOMAIN)}
        assert set(groups["company.com"].message_ids) == {"demo_14", "demo_15"}
        assert groups["github.com"].count == 3


class TestDemoMailbox:
    @pytest.mark.asyncio
    async def test_fetch_returns_inbox(self):
        mailbox = DemoMailbox()
        messages = await mailbox.fetch()
        assert [m.id for m in messages] == [m.id for m in demo_messages()]

    @pytest.mark.asyncio
    async def test_archive_and_delete(self):
        mailbox = DemoMailbox()
        await mailbox.archive(["demo_1", "demo_2"])
        await mailbox.delete(["demo_3"])
        assert mailbox.archived == ["demo_1", "demo_2"]
        assert mailbox.deleted == ["demo_3"]
        remaining = {m.id for m in await mailbox.fetch()}
        assert not remaining & {"demo_1", "demo_2", "demo_3"}

    @pytest.mark.asyncio
    async def test_refused_ids_raise_partial_failure(self):
        mailbox = DemoMailbox(fail_ids={"demo_9"})
        with pytest.raises(PartialFailure) as exc_info:
            await mailbox.archive(["demo_8", "demo_9"])
        assert exc_info.value.succeeded == {"demo_8"}
        assert exc_info.value.failed == {"demo_9"}
        assert str(exc_info.value) == "1 of 2 failed: refused by demo mailbox"
        assert mailbox.archived == ["demo_8"]
        assert "demo_9" in mailbox.inbox

    @pytest.mark.asyncio
    async def test_all_refused_is_a_transport_error(self):
        mailbox = DemoMailbox(fail_ids={"demo_8", "demo_9"})
        with pytest.raises(TransportError):
            await mailbox.delete(["demo_8", "demo_9"])
        assert mailbox.deleted == []
        assert {"demo_8", "demo_9"} <= set(mailbox.inbox)


class TestRunOperation:
    @pytest.mark.asyncio
    async def test_success(self):
        operation = Operation(1, OperationKind.DELETE, frozenset({"demo_10", "demo_11"}))
        outcome = await run_operation(DemoMailbox(), operation)
        assert outcome.ok
        assert outcome.succeeded == {"demo_10", "demo_11"}

    @pytest.mark.asyncio
    async def test_partial_failure(self):
        operation = Operation(2, OperationKind.ARCHIVE, frozenset({"demo_8", "demo_9"}))
        outcome = await run_operation(DemoMailbox(fail_ids={"demo_9"}), operation)
        assert outcome.partial
        assert outcome.succeeded == {"demo_8"}
        assert outcome.failed == {"demo_9"}

    @pytest.mark.asyncio
    async def test_all_refused_is_not_partial(self):
        operation = Operation(4, OperationKind.ARCHIVE, frozenset({"demo_9"}))
        outcome = await run_operation(DemoMailbox(fail_ids={"demo_9"}), operation)
        assert not outcome.ok
        assert not outcome.partial
        assert outcome.succeeded == frozenset()
        assert outcome.failed == {"demo_9"}

    @pytest.mark.asyncio
    async def test_fetch_is_not_an_operation(self):
        with pytest.raises(ValueError):
            await run_operation(DemoMailbox(), Operation(3, OperationKind.FETCH))
