"""Resolution rules: priority, ties, overrides and enable/disable."""

import itertools
import random

import pytest

from skinmod_manager.errors import NoSuchClaimError
from skinmod_manager.registry.registry import ModRegistry
from skinmod_manager.services.conflicts.engine import (
    Ambiguous,
    ConflictEngine,
    OverriddenTo,
    Owned,
    resolve,
)

HERO = "chars/hero/skin1.bin"


@pytest.fixture
def conflict_engine(registry):
    return ConflictEngine(registry)


class TestScenario:
    def test_priority_disable_and_override(self, registry, make_mod):
        a = make_mod("A", ["/chars/hero/skin1.bin"], priority=5)
        b = make_mod("B", ["/chars/hero/skin1.bin"], priority=10)

        assert resolve(registry.snapshot())[HERO] == Owned(b)

        registry.set_enabled(b, False)
        assert resolve(registry.snapshot())[HERO] == Owned(a)

        registry.set_enabled(b, True)
        registry.set_manual_override(HERO, a)
        outcome = resolve(registry.snapshot())[HERO]
        assert outcome.owner == a
        assert outcome == OverriddenTo(a)


class TestRules:
    def test_single_claim_is_owned(self, registry, make_mod):
        a = make_mod("A", ["x.bin", "y.bin"])
        resolution = resolve(registry.snapshot())
        assert resolution["x.bin"] == Owned(a)
        assert resolution["y.bin"] == Owned(a)
        assert resolution.conflict_groups == {}

    def test_highest_priority_wins(self, registry, make_mod):
        make_mod("Low", ["x.bin"], priority=1)
        high = make_mod("High", ["x.bin"], priority=9)
        make_mod("Mid", ["x.bin"], priority=4)
        assert resolve(registry.snapshot())["x.bin"] == Owned(high)

    def test_negative_priorities(self, registry, make_mod):
        a = make_mod("A", ["x.bin"], priority=-1)
        make_mod("B", ["x.bin"], priority=-5)
        assert resolve(registry.snapshot())["x.bin"] == Owned(a)

    def test_tie_is_ambiguous(self, registry, make_mod):
        a = make_mod("A", ["x.bin"], priority=3)
        b = make_mod("B", ["x.bin"], priority=3)
        outcome = resolve(registry.snapshot())["x.bin"]
        assert outcome == Ambiguous((a, b))
        assert outcome.owner is None

    def test_tie_only_among_top_priority(self, registry, make_mod):
        make_mod("Low", ["x.bin"], priority=1)
        b = make_mod("B", ["x.bin"], priority=3)
        c = make_mod("C", ["x.bin"], priority=3)
        assert resolve(registry.snapshot())["x.bin"] == Ambiguous((b, c))

    def test_override_breaks_tie(self, registry, make_mod):
        make_mod("A", ["x.bin"], priority=3)
        b = make_mod("B", ["x.bin"], priority=3)
        registry.set_manual_override("x.bin", b)
        assert resolve(registry.snapshot())["x.bin"] == OverriddenTo(b)

    def test_override_to_disabled_mod_is_ignored(self, registry, make_mod):
        a = make_mod("A", ["x.bin"], priority=1)
        b = make_mod("B", ["x.bin"], priority=2)
        registry.set_manual_override("x.bin", a)
        registry.set_enabled(a, False)
        assert resolve(registry.snapshot())["x.bin"] == Owned(b)
        registry.set_enabled(a, True)
        assert resolve(registry.snapshot())["x.bin"] == OverriddenTo(a)

    def test_override_requires_claim(self, registry, make_mod, conflict_engine):
        a = make_mod("A", ["x.bin"])
        make_mod("B", ["y.bin"])
        with pytest.raises(NoSuchClaimError):
            conflict_engine.set_manual_override("y.bin", a)

    def test_disabled_mods_excluded(self, registry, make_mod):
        a = make_mod("A", ["x.bin"])
        registry.set_enabled(a, False)
        resolution = resolve(registry.snapshot())
        assert "x.bin" not in resolution
        assert len(resolution) == 0

    def test_lookup_normalises_path(self, registry, make_mod):
        a = make_mod("A", [HERO])
        resolution = resolve(registry.snapshot())
        assert resolution["/chars\\hero//skin1.bin"] == Owned(a)
        assert "\\chars\\hero\\skin1.bin" in resolution
        assert "../nope" not in resolution

    def test_owned_by_and_owner_of(self, registry, make_mod):
        a = make_mod("A", ["x.bin", "y.bin"], priority=1)
        b = make_mod("B", ["y.bin"], priority=2)
        resolution = resolve(registry.snapshot())
        assert resolution.owned_by(a) == ["x.bin"]
        assert resolution.owner_of("y.bin") == b


class TestProperties:
    def _random_registry(self, seed: int, clock) -> ModRegistry:
        rng = random.Random(seed)
        registry = ModRegistry(clock=clock)
        paths = [f"p/{i}.bin" for i in range(8)]
        for n in range(6):
            files = rng.sample(paths, rng.randint(1, 5))
            registry.add_mod(
                {
                    "name": f"M{n}",
                    "files": [[p, f"h{n}"] for p in files],
                    "priority": rng.randint(0, 3),
                }
            )
        for mod in registry.list_mods():
            if rng.random() < 0.3:
                registry.set_enabled(mod.id, False)
        return registry

    @pytest.mark.parametrize("seed", range(10))
    def test_resolve_is_pure(self, seed, clock):
        registry = self._random_registry(seed, clock)
        snap = registry.snapshot()
        assert resolve(snap) == resolve(snap)
        assert list(resolve(snap)) == list(resolve(snap))

    @pytest.mark.parametrize("seed", range(10))
    def test_outcomes_follow_rules(self, seed, clock):
        registry = self._random_registry(seed, clock)
        snap = registry.snapshot()
        resolution = resolve(snap)
        claims = snap.file_claims(enabled_only=True)
        assert set(resolution) == set(claims)
        for path, group in claims.items():
            outcome = resolution[path]
            if len(group) == 1:
                assert outcome == Owned(group[0].mod_id)
                continue
            prios = {c.mod_id: snap.mods[c.mod_id].priority for c in group}
            top = max(prios.values())
            winners = sorted(m for m, p in prios.items() if p == top)
            if len(winners) == 1:
                assert outcome == Owned(winners[0])
            else:
                assert outcome == Ambiguous(tuple(winners))

    @pytest.mark.parametrize("seed", range(10))
    def test_override_always_wins(self, seed, clock):
        registry = self._random_registry(seed, clock)
        for path, group in registry.snapshot().file_claims(enabled_only=True).items():
            if len(group) < 2:
                continue
            for claim in group:
                registry.set_manual_override(path, claim.mod_id)
                assert resolve(registry.snapshot())[path].owner == claim.mod_id

    @pytest.mark.parametrize("seed", range(5))
    def test_disable_then_enable_restores_resolution(self, seed, clock):
        registry = self._random_registry(seed, clock)
        for mod in registry.list_mods():
            registry.set_enabled(mod.id, True)
        original = resolve(registry.snapshot())
        for mod in registry.list_mods():
            registry.set_enabled(mod.id, False)
            disabled = resolve(registry.snapshot())
            assert all(
                c.mod_id != mod.id for group in disabled.conflict_groups.values() for c in group
            )
            registry.set_enabled(mod.id, True)
            assert resolve(registry.snapshot()) == original

    def test_result_independent_of_install_order(self, clock):
        specs = [("A", 2), ("B", 5), ("C", 5), ("D", 1)]
        results = []
        for order in itertools.permutations(specs):
            registry = ModRegistry(clock=clock)
            ids = {}
            for name, prio in order:
                ids[name] = registry.add_mod(
                    {"name": name, "files": [["x.bin", name]], "priority": prio}
                )
            outcome = resolve(registry.snapshot())["x.bin"]
            assert isinstance(outcome, Ambiguous)
            results.append(sorted(name for name, i in ids.items() if i in outcome.mod_ids))
        assert all(r == ["B", "C"] for r in results)


class TestConflictEngine:
    def test_recomputes_after_mutation(self, registry, make_mod, conflict_engine):
        a = make_mod("A", ["x.bin"], priority=1)
        b = make_mod("B", ["x.bin"], priority=2)
        assert conflict_engine.resolve()["x.bin"] == Owned(b)
        registry.set_priority(a, 9)
        assert conflict_engine.resolve()["x.bin"] == Owned(a)

    def test_cached_between_mutations(self, make_mod, conflict_engine):
        make_mod("A", ["x.bin"])
        first = conflict_engine.resolve()
        assert conflict_engine.resolve() is first

    def test_update_state_write_keeps_cache(self, registry, make_mod, conflict_engine, clock):
        from skinmod_manager.registry.types import UpToDate

        a = make_mod("A", ["x.bin"])
        first = conflict_engine.resolve()
        registry.record_update_state(a, UpToDate(checked_at=clock()))
        assert conflict_engine.resolve() is first

    def test_override_via_engine(self, make_mod, conflict_engine):
        a = make_mod("A", ["x.bin"], priority=1)
        make_mod("B", ["x.bin"], priority=2)
        resolution = conflict_engine.set_manual_override("x.bin", a)
        assert resolution["x.bin"] == OverriddenTo(a)
        assert conflict_engine.clear_manual_override("x.bin") is True
        assert conflict_engine.resolve()["x.bin"].owner != a

    def test_explicit_snapshot_resolved(self, registry, make_mod, conflict_engine):
        a = make_mod("A", ["x.bin"])
        old = registry.snapshot()
        registry.set_enabled(a, False)
        assert conflict_engine.resolve(old)["x.bin"] == Owned(a)
        assert "x.bin" not in conflict_engine.resolve()
