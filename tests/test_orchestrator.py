import asyncio
import math
import time

import pytest

from conftest import make_role
from sevensons import stats
from sevensons.errors import ProviderError, StorageError
from sevensons.memory import ConversationStore, InMemoryBackend
from sevensons.orchestration import (
    DEFAULT_ROLES,
    FALLBACK_APOLOGY,
    ResponseOrchestrator,
    RoleRegistry,
    partition,
)
from sevensons.orchestration.demo import reply_pool
from sevensons.config import OrchestratorConfig

AUGMENT_HEADER = "[本轮已有角色回复参考]"


def test_partition_sizes():
    roles = [make_role(f"r{i}") for i in range(7)]
    batches = partition(roles, 3)
    assert [len(b) for b in batches] == [3, 3, 1]
    assert [r for b in batches for r in b] == roles


def test_partition_clamps_batch_size():
    roles = [make_role("a"), make_role("b")]
    assert partition(roles, 0) == [[roles[0]], [roles[1]]]
    assert partition([], 3) == []


@pytest.mark.asyncio
@pytest.mark.parametrize("participants,batch_size", [(5, 2), (6, 3), (1, 3), (4, 1)])
async def test_batches_wait_for_each_other(build_orchestrator, factory, participants, batch_size):
    roles = [make_role(f"r{i}") for i in range(participants)]
    for i, role in enumerate(roles):
        # later roles in a batch finish first
        factory.add(role.id, delay=0.01 * (participants - i))
    orchestrator = build_orchestrator(roles, batch_size=batch_size)

    outcomes = await orchestrator.run_round("你好", "s1")

    assert len(outcomes) == participants
    batches = partition(roles, batch_size)
    assert len(batches) == math.ceil(participants / batch_size)

    events = factory.events
    for earlier, later in zip(batches, batches[1:]):
        last_end = max(events.index(("end", r.id)) for r in earlier)
        first_start = min(events.index(("start", r.id)) for r in later)
        assert last_end < first_start


@pytest.mark.asyncio
async def test_roles_within_a_batch_run_concurrently(build_orchestrator, factory):
    roles = [make_role("a"), make_role("b"), make_role("c")]
    for role in roles:
        factory.add(role.id, delay=0.2)
    orchestrator = build_orchestrator(roles, batch_size=3)

    started = time.monotonic()
    await orchestrator.run_round("你好", "s1")

    assert time.monotonic() - started < 0.5


@pytest.mark.asyncio
async def test_output_order_follows_participants(build_orchestrator, factory):
    roles = [make_role("slow"), make_role("medium"), make_role("fast")]
    factory.add("slow", delay=0.05)
    factory.add("medium", delay=0.02)
    factory.add("fast", delay=0.0)
    orchestrator = build_orchestrator(roles, batch_size=3)

    outcomes = await orchestrator.run_round("排个队", "s1")

    assert [o.role_id for o in outcomes] == ["slow", "medium", "fast"]
    assert factory.events.index(("end", "fast")) < factory.events.index(("end", "slow"))
    assert all(o.succeeded for o in outcomes)
    assert outcomes[0].content == "slow 的回复"


@pytest.mark.asyncio
async def test_later_batches_see_earlier_replies(build_orchestrator, factory):
    roles = [make_role("A"), make_role("B"), make_role("C")]
    factory.add("A", reply="A 说山高水长")
    factory.add("B", reply="B 说天下大势")
    factory.add("C", reply="C 说好")
    orchestrator = build_orchestrator(roles, batch_size=2)

    await orchestrator.run_round("聊聊天下", "s1")

    a_prompt = factory.clients["model-A"].last_prompt
    b_prompt = factory.clients["model-B"].last_prompt
    c_prompt = factory.clients["model-C"].last_prompt

    assert a_prompt == "聊聊天下"
    assert b_prompt == "聊聊天下"
    assert AUGMENT_HEADER in c_prompt
    assert "- A: A 说山高水长" in c_prompt
    assert "- B: B 说天下大势" in c_prompt


@pytest.mark.asyncio
async def test_reply_previews_are_truncated(build_orchestrator, factory):
    roles = [make_role("A"), make_role("B")]
    factory.add("A", reply="长" * 500)
    orchestrator = build_orchestrator(roles, batch_size=1, preview_chars=300)

    await orchestrator.run_round("说吧", "s1")

    b_prompt = factory.clients["model-B"].last_prompt
    assert b_prompt.endswith("- A: " + "长" * 300)


@pytest.mark.asyncio
async def test_store_keeps_original_message(build_orchestrator, factory, store):
    roles = [make_role("A"), make_role("B")]
    orchestrator = build_orchestrator(roles, batch_size=1)

    await orchestrator.run_round("原话", "s1")

    history = store.get_history("B", "s1")
    assert [m.content for m in history] == ["原话", "B 的回复"]
    assert history[0].is_user and not history[1].is_user


@pytest.mark.asyncio
async def test_demo_mode_makes_no_calls(build_orchestrator, factory, store):
    roles = [make_role("a"), make_role("b"), make_role("c")]

    def refuse(source):
        raise AssertionError("no client expected in demo mode")

    orchestrator = build_orchestrator(roles, demo_mode=True, batch_size=2)
    orchestrator.client_factory = refuse

    outcomes = await asyncio.wait_for(orchestrator.run_round("你好", "s1"), timeout=1)

    assert len(outcomes) == 3
    for role, outcome in zip(roles, outcomes):
        assert not outcome.succeeded
        assert outcome.used_fallback
        assert outcome.content in reply_pool(role)
        assert len(store.get_history(role.id, "s1")) == 2
    assert stats.get_stats().total_calls == 0


@pytest.mark.asyncio
async def test_default_roles_without_credentials_use_templates():
    by_name = {role.name: role for role in DEFAULT_ROLES}
    roles = [by_name["李白"], by_name["孙悟空"]]
    config = OrchestratorConfig()
    store = ConversationStore()

    def refuse(source):
        raise AssertionError("no credentials configured")

    orchestrator = ResponseOrchestrator(RoleRegistry(roles, config), store, config=config, client_factory=refuse)

    outcomes = await orchestrator.run_round("你好", "s1", roles)

    assert [o.role_name for o in outcomes] == ["李白", "孙悟空"]
    for role, outcome in zip(roles, outcomes):
        assert outcome.content
        assert outcome.content in reply_pool(role)
        history = store.get_history(role.id, "s1")
        assert [m.content for m in history] == ["你好", outcome.content]


@pytest.mark.asyncio
async def test_slow_role_times_out_alone(build_orchestrator, factory):
    roles = [make_role("quick"), make_role("stuck")]
    factory.add("quick")
    factory.add("stuck", delay=5)
    orchestrator = build_orchestrator(roles, batch_size=2, request_timeout_ms=100)

    started = time.monotonic()
    outcomes = await orchestrator.run_round("你好", "s1")
    elapsed = time.monotonic() - started

    assert elapsed < 0.1 + 0.5
    quick, stuck = outcomes
    assert quick.succeeded and quick.content == "quick 的回复"
    assert not stuck.succeeded
    assert stuck.content == FALLBACK_APOLOGY
    assert "100" in stuck.error_detail
    assert stats.get_stats().timeouts_by_role == {"stuck": 1}


@pytest.mark.asyncio
async def test_provider_error_falls_back(build_orchestrator, factory, store):
    roles = [make_role("ok"), make_role("broken")]
    factory.add("broken", error=ProviderError("HTTP 500", provider="openai", status_code=500))
    orchestrator = build_orchestrator(roles)

    outcomes = await orchestrator.run_round("你好", "s1")

    assert outcomes[0].succeeded
    assert outcomes[1].content == FALLBACK_APOLOGY
    assert outcomes[1].error_detail == "HTTP 500"
    assert store.get_history("broken", "s1")[-1].content == FALLBACK_APOLOGY


@pytest.mark.asyncio
async def test_unexpected_client_error_falls_back(build_orchestrator, factory):
    roles = [make_role("weird")]
    factory.add("weird", error=RuntimeError("socket closed"))
    orchestrator = build_orchestrator(roles)

    outcome = (await orchestrator.run_round("你好", "s1"))[0]

    assert outcome.content == FALLBACK_APOLOGY
    assert stats.get_stats().fallbacks_by_role == {"weird": 1}


@pytest.mark.asyncio
async def test_empty_completion_falls_back(build_orchestrator, factory):
    roles = [make_role("mute")]
    factory.add("mute", reply="")
    orchestrator = build_orchestrator(roles)

    outcome = (await orchestrator.run_round("你好", "s1"))[0]

    assert not outcome.succeeded
    assert outcome.content == FALLBACK_APOLOGY


@pytest.mark.asyncio
async def test_invalid_role_key_uses_templates(build_orchestrator, factory):
    roles = [make_role("nokey", api_key="your-api-key")]
    orchestrator = build_orchestrator(roles)

    outcome = (await orchestrator.run_round("你好", "s1"))[0]

    assert outcome.used_fallback
    assert outcome.content in reply_pool(roles[0])
    assert factory.clients == {}


@pytest.mark.asyncio
async def test_presentation_delays(build_orchestrator, factory):
    roles = [make_role(f"r{i}") for i in range(3)]
    orchestrator = build_orchestrator(roles, first_message_delay_ms=100, per_role_delay_ms=50)

    outcomes = await orchestrator.run_round("你好", "s1")

    assert [o.delay_ms for o in outcomes] == [100, 150, 200]
    payload = orchestrator.aggregator.group_payload(outcomes)
    assert [m["delay"] for m in payload["aiResponses"]] == [100, 150, 200]
    assert payload["aiResponses"][0]["id"].startswith("ai-")


@pytest.mark.asyncio
async def test_batch_delay_sleeps_between_batches(build_orchestrator, factory):
    roles = [make_role(f"r{i}") for i in range(5)]
    orchestrator = build_orchestrator(roles, batch_size=2, batch_delay_ms=250)
    slept = []

    async def fake_sleep(seconds):
        slept.append(seconds)

    orchestrator.sleep = fake_sleep

    await orchestrator.run_round("你好", "s1")

    assert slept == [0.25, 0.25]


@pytest.mark.asyncio
async def test_on_outcome_reports_each_reply(build_orchestrator, factory):
    roles = [make_role("a"), make_role("b"), make_role("c")]
    orchestrator = build_orchestrator(roles, batch_size=2)
    seen = []

    await orchestrator.run_round("你好", "s1", on_outcome=lambda o: seen.append(o.role_id))

    assert seen == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_inactive_roles_do_not_take_part(build_orchestrator, factory):
    roles = [make_role("on"), make_role("off", is_active=False)]
    orchestrator = build_orchestrator(roles)

    outcomes = await orchestrator.run_round("你好", "s1")

    assert [o.role_id for o in outcomes] == ["on"]


@pytest.mark.asyncio
async def test_memory_and_history_reach_the_next_turn(build_orchestrator, factory):
    role = make_role("friend")
    factory.add("friend", reply="好的，我会记住")
    orchestrator = build_orchestrator([role], history_window=10)

    await orchestrator.respond("请记住我的生日是五月", "s1", role)
    await orchestrator.respond("我刚才说了什么", "s1", role)

    client = factory.clients["model-friend"]
    assert "你的记忆片段：" in client.system_prompt
    assert "用户提到：请记住我的生日是五月" in client.system_prompt
    contents = [m.content for m in client.calls[-1][1:]]
    assert contents == ["请记住我的生日是五月", "好的，我会记住", "我刚才说了什么"]


@pytest.mark.asyncio
async def test_respond_returns_single_outcome(build_orchestrator, factory):
    role = make_role("solo")
    orchestrator = build_orchestrator([role])

    outcome = await orchestrator.respond("你好", "s1", role)

    assert outcome.role_id == "solo"
    assert outcome.succeeded
    assert stats.get_stats().rounds == 1


@pytest.mark.asyncio
async def test_clients_are_reused_and_closed(build_orchestrator, factory):
    role = make_role("solo")
    orchestrator = build_orchestrator([role])

    await orchestrator.respond("一", "s1", role)
    await orchestrator.respond("二", "s1", role)
    await orchestrator.aclose()

    client = factory.clients["model-solo"]
    assert len(client.calls) == 2
    assert client.closed


class BrokenBackend:
    def fetch(self, role_id, session_id):
        raise StorageError("disk gone")

    def save(self, role_id, session_id, row):
        raise StorageError("disk gone")

    def delete(self, role_id, session_id):
        raise StorageError("disk gone")


def build_with_store(roles, factory, store) -> ResponseOrchestrator:
    config = OrchestratorConfig(batch_size=2)
    return ResponseOrchestrator(RoleRegistry(roles, config), store, config=config, client_factory=factory)


@pytest.mark.asyncio
async def test_storage_outage_keeps_replies(factory):
    roles = [make_role("live"), make_role("offline", api_key="your-api-key")]
    orchestrator = build_with_store(roles, factory, ConversationStore(backend=BrokenBackend()))

    live, offline = await orchestrator.run_round("你好", "s1")

    assert live.succeeded
    assert live.content == "live 的回复"
    assert offline.used_fallback
    assert offline.content in reply_pool(roles[1])
    assert FALLBACK_APOLOGY not in (live.content, offline.content)


@pytest.mark.asyncio
async def test_corrupt_record_is_replaced_by_next_turn(factory):
    backend = InMemoryBackend()
    roles = [make_role("live"), make_role("offline", api_key="your-api-key")]
    for role in roles:
        backend.save(role.id, "s1", {"memory_snippets": [{"content": "x", "importance": "high"}]})
    store = ConversationStore(backend=backend)
    orchestrator = build_with_store(roles, factory, store)

    live, offline = await orchestrator.run_round("你好", "s1")

    assert live.succeeded
    assert live.content == "live 的回复"
    assert offline.content in reply_pool(roles[1])
    assert [m.content for m in store.get_history("live", "s1")] == ["你好", "live 的回复"]
    assert [m.content for m in store.get_history("offline", "s1")] == ["你好", offline.content]
