"""Tests for committed history, the pending slot and tool-group display."""

from __future__ import annotations

from cadence.core.history import InMemoryHistoryStore
from cadence.core.pending import PendingDisplayState
from cadence.models.history import (
    HistoryItem,
    MessageType,
    ToolDisplayStatus,
    info_item,
    map_to_display,
)
from cadence.models.tools import (
    ToolCallRequest,
    ToolCallResponse,
    ToolCallStatus,
    TrackedToolCall,
)


def user(text: str) -> HistoryItem:
    return HistoryItem(type=MessageType.user, text=text)


def tracked(call_id: str, status: ToolCallStatus, display: str | None = None) -> TrackedToolCall:
    response = None
    if display is not None:
        response = ToolCallResponse(call_id=call_id, response_parts="", result_display=display)
    return TrackedToolCall(
        request=ToolCallRequest(call_id=call_id, name="read_file"),
        status=status,
        response=response,
        description=f"read {call_id}",
        confirmation_details={"title": "ok?"},
    )


class TestHistoryStore:
    def test_ids_increase_with_insertion_order(self) -> None:
        history = InMemoryHistoryStore()
        first = history.add_item(user("a"), 1000)
        second = history.add_item(info_item("b"), 1000)
        third = history.add_item(info_item("c"), 500)

        assert first < second
        assert [item.id for item in history.items] == [first, second, third]
        assert [item.text for item in history.items] == ["a", "b", "c"]

    def test_repeated_user_entry_is_skipped(self) -> None:
        history = InMemoryHistoryStore()
        history.add_item(user("same"), 1)
        history.add_item(user("same"), 2)
        history.add_item(info_item("between"), 3)
        history.add_item(user("same"), 4)

        assert [item.type for item in history.items] == [
            MessageType.user,
            MessageType.info,
            MessageType.user,
        ]

    def test_subscribers_see_commits(self) -> None:
        history = InMemoryHistoryStore()
        seen: list[HistoryItem] = []
        unsubscribe = history.subscribe(seen.append)

        history.add_item(info_item("one"), 1)
        unsubscribe()
        history.add_item(info_item("two"), 1)

        assert [item.text for item in seen] == ["one"]
        assert seen[0].id is not None

    def test_update_and_clear(self) -> None:
        history = InMemoryHistoryStore()
        item_id = history.add_item(info_item("old"), 1)

        assert history.update_item(item_id, text="new") is True
        assert history.update_item(-1, text="x") is False
        assert history.items[0].text == "new"

        history.clear()
        assert history.items == []


class TestPendingDisplayState:
    def test_flush_commits_and_clears(self) -> None:
        history = InMemoryHistoryStore()
        pending = PendingDisplayState(history)
        pending.set(HistoryItem(type=MessageType.model, text="hi"))
        pending.set_text("hi there")

        assert pending.is_model_text is True
        flushed = pending.flush(10)

        assert flushed is not None
        assert pending.item is None
        assert [item.text for item in history.items] == ["hi there"]
        assert pending.flush(11) is None

    def test_cancelled_flush_marks_unfinished_tools(self) -> None:
        history = InMemoryHistoryStore()
        pending = PendingDisplayState(history)
        pending.set(
            map_to_display(
                [
                    tracked("c1", ToolCallStatus.success, "done"),
                    tracked("c2", ToolCallStatus.executing),
                    tracked("c3", ToolCallStatus.awaiting_approval),
                ]
            )
        )

        pending.flush(10, cancelled=True)

        [group] = history.items
        assert [tool.status for tool in group.tools] == [
            ToolDisplayStatus.success,
            ToolDisplayStatus.canceled,
            ToolDisplayStatus.canceled,
        ]


class TestMapToDisplay:
    def test_projects_statuses_and_results(self) -> None:
        group = map_to_display(
            [
                tracked("c1", ToolCallStatus.scheduled),
                tracked("c2", ToolCallStatus.awaiting_approval),
                tracked("c3", ToolCallStatus.cancelled, "stopped"),
            ]
        )

        assert group.type == MessageType.tool_group
        assert [tool.status for tool in group.tools] == [
            ToolDisplayStatus.pending,
            ToolDisplayStatus.confirming,
            ToolDisplayStatus.canceled,
        ]
        assert group.tools[2].result_display == "stopped"
        assert group.tools[0].description == "read c1"

    def test_confirmation_details_only_while_confirming(self) -> None:
        group = map_to_display(
            [tracked("c1", ToolCallStatus.awaiting_approval), tracked("c2", ToolCallStatus.success)]
        )
        assert group.tools[0].confirmation_details == {"title": "ok?"}
        assert group.tools[1].confirmation_details is None

    def test_non_group_items_unchanged_by_cancel(self) -> None:
        item = info_item("plain")
        assert item.with_incomplete_tools_cancelled() is item
