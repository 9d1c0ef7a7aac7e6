"""
Tests for the Python source generator.

Two kinds of checks:
    - Text: the expanded source has the expected shape
    - Behavior: the expanded source is executed and its observation
      events are recorded
"""

import textwrap

import pytest
from valueobs.augmenter import expand_observable_value
from valueobs.backends.python_generator import (
    expand_file,
    expand_source,
    generate_class,
    save_python_file,
)
from valueobs.config import EngineConfig
from valueobs.examples import EXAMPLE_SOURCE, build_example_model
from valueobs.runtime import EventKind, ObservableValue, observe


NESTED_SOURCE = textwrap.dedent(
    """\
    from valueobs.markers import observable_value


    @observable_value
    class Inner:
        value: int = 0


    @observable_value
    class Outer:
        inner: Inner = Inner()
        label = "outer"
    """
)


def _load(source):
    """Expand `source`, execute the result and return its namespace."""
    text, diagnostics = expand_source(source)
    namespace = {"__name__": "expanded"}
    exec(compile(text, "<expanded>", "exec"), namespace)
    return namespace, diagnostics


def _record(value, include_access=False):
    events = []

    def callback(event):
        if include_access or event.kind != EventKind.ACCESS:
            events.append((event.kind, event.key_path))

    observe(value, callback)
    return events


@pytest.fixture
def example():
    namespace, _ = _load(EXAMPLE_SOURCE)
    return namespace


class TestGeneratedText:
    """Shape of the expanded example."""

    @pytest.fixture
    def text(self):
        text, _ = expand_source(EXAMPLE_SOURCE)
        return text

    def test_imports_follow_docstring(self, text):
        lines = text.splitlines()
        assert lines[0] == '"""Example models."""'
        assert lines[1] == ""
        assert lines[2:6] == [
            "import contextlib",
            "import copy",
            "import uuid",
            "from valueobs.runtime import ObservableValue, ObservationRegistrar, initial_value",
        ]

    def test_observed_member_becomes_property(self, text):
        assert "    _count: int = 0\n" in text
        assert "    @property\n    def count(self) -> int:\n" in text
        assert '        self._access("count")\n        return self._count\n' in text
        assert "    @count.setter\n    def count(self, new_value: int) -> None:\n" in text
        assert "    @contextlib.contextmanager\n    def _modify_count(self):\n" in text

    def test_comparison_per_member_type(self, text):
        assert "        old_value = self._count\n" in text
        assert text.count("if not self._should_notify_observers_equatable(old_value, new_value):") == 2
        assert text.count("if not self._should_notify_observers_equatable_identity(old_value, new_value):") == 1

    def test_untouched_members_are_verbatim(self, text):
        assert "    constant: Final[int] = 1\n" in text
        assert "    ignored: Ignoring[int] = 2\n" in text
        assert "    @property\n    def computed(self) -> int:\n        return self.count\n" in text
        assert "_constant" not in text
        assert "_ignored" not in text

    def test_record_support(self, text):
        assert "    _id: uuid.UUID\n    _observation_registrar: ObservationRegistrar\n" in text
        assert "    def __new__(cls, *args, **kwargs):\n" in text
        assert "        self._tags = initial_value(cls._tags)\n" in text
        assert "    def copy(self):\n" in text
        assert text.count("ObservableValue.register(") == 1
        assert "\n\n\nObservableValue.register(Model)\n" in text

    def test_rejected_enumeration_is_unchanged(self, text):
        assert '@observable_value\nclass Flavor(Enum):\n    VANILLA = "vanilla"\n' in text
        assert "register(Flavor)" not in text

    def test_diagnostics(self):
        _, diagnostics = expand_source(EXAMPLE_SOURCE, path="models.py")
        assert [d.format("models.py") for d in diagnostics] == [
            "models.py:21:1: error: '@observable_value' cannot be applied to enumeration type 'Flavor'"
        ]

    def test_generate_class_from_model(self):
        text = generate_class(expand_observable_value(build_example_model()))
        assert text.startswith("class Model:\n    _count: int = 0\n")
        assert text.endswith("ObservableValue.register(Model)")


class TestUnchangedSource:
    """Source the engine has nothing to do for is returned byte-identical."""

    @pytest.mark.parametrize(
        "source",
        [
            "class Plain:\n    a: int = 0\n",
            "total: Observing[int] = 0\n",
            "import os\n\nx = 1",
            "@observable_value\nclass Color(Enum):\n    RED = 1\n",
        ],
    )
    def test_byte_identical(self, source):
        text, _ = expand_source(source)
        assert text == source

    def test_top_level_binding_has_no_diagnostics(self):
        _, diagnostics = expand_source("total: Observing[int] = 0\n")
        assert diagnostics == []


class TestStandaloneMembers:
    """Classes without the record directive, with explicit Observing members."""

    SOURCE = textwrap.dedent(
        """\
        class Host:
            total: Observing[int] = 0
            other: int = 1
        """
    )

    def test_only_marked_member_is_rewritten(self):
        text, diagnostics = expand_source(self.SOURCE)
        assert diagnostics == []
        assert "def total(self) -> int:" in text
        assert "    other: int = 1\n" in text
        assert "def copy(self)" not in text
        assert "register(Host)" not in text
        assert "import contextlib\nfrom valueobs.runtime import ObservableValue, instance_slot\n" in text
        assert "initial_value" not in text
        assert "import uuid" not in text


class TestRuntimeBehavior:
    """Execute the expanded example and watch the events."""

    def test_conforms_to_observable_value(self, example):
        model = example["Model"]()
        assert isinstance(model, ObservableValue)
        assert not isinstance(example["Flavor"].VANILLA, ObservableValue)

    def test_initial_values(self, example):
        model = example["Model"]()
        assert model.count == 0
        assert model.already == ""
        assert model.tags == []
        assert model.constant == 1
        assert model.ignored == 2

    def test_read_reports_access(self, example):
        model = example["Model"]()
        events = _record(model, include_access=True)
        model.count
        assert events == [(EventKind.ACCESS, "count")]

    def test_equal_assignment_is_silent(self, example):
        model = example["Model"]()
        events = _record(model)
        model.count = 0
        model.already = ""
        assert events == []

    def test_change_is_bracketed(self, example):
        model = example["Model"]()
        events = _record(model)
        model.count = 1
        assert model.count == 1
        assert events == [(EventKind.WILL_SET, "count"), (EventKind.DID_SET, "count")]

    def test_self_assignment_is_silent(self, example):
        model = example["Model"]()
        model.tags = ["a"]
        events = _record(model)
        model.tags = model.tags
        assert events == []

    def test_computed_member_reads_observed_value(self, example):
        model = example["Model"]()
        model.count = 4
        events = _record(model, include_access=True)
        assert model.computed == 4
        assert events == [(EventKind.ACCESS, "count")]

    def test_ignored_member_is_plain_attribute(self, example):
        model = example["Model"]()
        events = _record(model, include_access=True)
        model.ignored = 5
        assert model.ignored == 5
        assert events == []

    def test_modify_brackets_in_place_mutation(self, example):
        model = example["Model"]()
        events = _record(model, include_access=True)
        with model._modify_tags() as tags:
            tags.append("x")
        assert model.tags == ["x"]
        assert events[:3] == [
            (EventKind.ACCESS, "tags"),
            (EventKind.WILL_SET, "tags"),
            (EventKind.DID_SET, "tags"),
        ]

    def test_modify_signals_even_without_change(self, example):
        model = example["Model"]()
        events = _record(model)
        with model._modify_tags():
            pass
        assert events == [(EventKind.WILL_SET, "tags"), (EventKind.DID_SET, "tags")]

    def test_modify_signals_did_set_on_error(self, example):
        model = example["Model"]()
        events = _record(model)
        with pytest.raises(RuntimeError):
            with model._modify_count():
                raise RuntimeError("boom")
        assert events == [(EventKind.WILL_SET, "count"), (EventKind.DID_SET, "count")]

    def test_mutable_initializers_are_per_instance(self, example):
        first = example["Model"]()
        second = example["Model"]()
        with first._modify_tags() as tags:
            tags.append("only-first")
        assert second.tags == []
        assert first._id != second._id
        assert first._observation_registrar is not second._observation_registrar


class TestCopy:
    def test_copy_has_fresh_identity_and_registrar(self, example):
        model = example["Model"]()
        model.count = 3
        duplicate = model.copy()
        assert duplicate.count == 3
        assert duplicate._id != model._id
        assert duplicate._observation_registrar is not model._observation_registrar
        assert isinstance(duplicate, ObservableValue)

    def test_copy_is_detached(self, example):
        model = example["Model"]()
        model.tags = ["a"]
        events = _record(model)
        duplicate = model.copy()
        duplicate.count = 9
        with duplicate._modify_tags() as tags:
            tags.append("b")
        assert model.count == 0
        assert model.tags == ["a"]
        assert events == []


class TestNestedRecords:
    """A record holding another record compares by identity."""

    @pytest.fixture
    def ns(self):
        namespace, diagnostics = _load(NESTED_SOURCE)
        assert diagnostics == []
        return namespace

    def test_same_identity_replacement_is_silent(self, ns):
        import copy

        outer = ns["Outer"]()
        same = copy.copy(outer.inner)
        assert same._id == outer.inner._id
        events = _record(outer)
        outer.inner = same
        assert events == []
        assert outer.inner is same

    def test_new_instance_replacement_notifies(self, ns):
        outer = ns["Outer"]()
        events = _record(outer)
        outer.inner = ns["Inner"]()
        assert events == [(EventKind.WILL_SET, "inner"), (EventKind.DID_SET, "inner")]

    def test_modify_of_nested_record_is_not_bracketed(self, ns):
        outer = ns["Outer"]()
        outer_events = _record(outer)
        inner_events = _record(outer.inner)
        with outer._modify_inner() as inner:
            inner.value = 2
        assert outer_events == []
        assert inner_events == [(EventKind.WILL_SET, "value"), (EventKind.DID_SET, "value")]

    def test_unannotated_member_always_notifies(self, ns):
        outer = ns["Outer"]()
        events = _record(outer)
        outer.label = "outer"
        assert events == [(EventKind.WILL_SET, "label"), (EventKind.DID_SET, "label")]

    def test_copy_keeps_nested_identity(self, ns):
        outer = ns["Outer"]()
        duplicate = outer.copy()
        assert duplicate.inner._id == outer.inner._id


class TestFiles:
    def test_expand_file(self, tmp_path):
        source = tmp_path / "models.py"
        source.write_text(EXAMPLE_SOURCE, encoding="utf-8")
        text, diagnostics = expand_file(source)
        assert "ObservableValue.register(Model)" in text
        assert len(diagnostics) == 1

    def test_save_python_file(self, tmp_path):
        source = tmp_path / "models.py"
        output = tmp_path / "models_observed.py"
        source.write_text(NESTED_SOURCE, encoding="utf-8")
        diagnostics = save_python_file(source, output)
        assert diagnostics == []
        assert "ObservableValue.register(Outer)" in output.read_text(encoding="utf-8")

    def test_runtime_module_from_config(self):
        config = EngineConfig(runtime_module="myapp.observation")
        text, _ = expand_source(NESTED_SOURCE, config=config)
        assert "from myapp.observation import ObservableValue, ObservationRegistrar" in text


HOST_SOURCE = textwrap.dedent(
    """\
    from valueobs.markers import Observing
    from valueobs.runtime import ObservationRegistrar


    class Host:
        items: Observing[list] = []

        def __init__(self):
            self._observation_registrar = ObservationRegistrar()

        def _access(self, key_path):
            self._observation_registrar.access(self, key_path)

        def _with_mutation(self, key_path):
            return self._observation_registrar.with_mutation(self, key_path)

        @staticmethod
        def _should_notify_observers_equatable_identity(lhs, rhs):
            return lhs != rhs
    """
)


class TestStandaloneRuntime:
    """A host class supplying its own helpers, with one observed member."""

    @pytest.fixture
    def host_class(self):
        namespace, diagnostics = _load(HOST_SOURCE)
        assert diagnostics == []
        return namespace["Host"]

    def test_instances_do_not_share_mutable_defaults(self, host_class):
        first, second = host_class(), host_class()
        with first._modify_items() as items:
            items.append(1)
        assert first.items == [1]
        assert second.items == []
        assert host_class._items == []

    def test_write_notifies_through_host_registrar(self, host_class):
        host = host_class()
        events = []
        host._observation_registrar.observe(
            lambda e: events.append((e.kind, e.key_path)) if e.kind != EventKind.ACCESS else None
        )
        host.items = [2]
        host.items = [2]
        assert host.items == [2]
        assert events == [(EventKind.WILL_SET, "items"), (EventKind.DID_SET, "items")]


class TestClassLevelInitializers:
    """Initializers may refer to names defined earlier in the class body."""

    SOURCE = textwrap.dedent(
        """\
        from valueobs.markers import observable_value


        @observable_value
        class Settings:
            DEFAULT = 5
            level: int = DEFAULT
            history: list = [DEFAULT]
        """
    )

    def test_class_constant_in_initializer(self):
        namespace, diagnostics = _load(self.SOURCE)
        assert diagnostics == []
        settings = namespace["Settings"]()
        assert settings.level == 5
        assert settings.history == [5]

    def test_each_instance_gets_its_own_copy(self):
        namespace, _ = _load(self.SOURCE)
        first, second = namespace["Settings"](), namespace["Settings"]()
        with first._modify_history() as history:
            history.append(6)
        assert first.history == [5, 6]
        assert second.history == [5]
        assert namespace["Settings"]._history == [5]


class TestDataclassRecords:
    """Dataclass records are rejected and left runnable."""

    SOURCE = textwrap.dedent(
        """\
        from dataclasses import dataclass

        from valueobs.markers import observable_value


        @observable_value
        @dataclass
        class Point:
            x: int = 0
            y: int = 0
        """
    )

    def test_rejected_with_positioned_error(self):
        text, diagnostics = expand_source(self.SOURCE, path="points.py")
        assert text == self.SOURCE
        assert [d.format("points.py") for d in diagnostics] == [
            "points.py:6:1: error: '@observable_value' cannot be applied to dataclass 'Point'"
        ]

    def test_expanded_module_still_runs(self):
        namespace, _ = _load(self.SOURCE)
        point = namespace["Point"](x=1)
        assert (point.x, point.y) == (1, 0)
        assert not isinstance(point, ObservableValue)


class TestRejectedTypesAreNotObservable:
    """A rejected declaration is not treated as an observable member type."""

    SOURCE = textwrap.dedent(
        """\
        from enum import Enum

        from valueobs.markers import observable_value


        @observable_value
        class Flavor(Enum):
            VANILLA = "vanilla"


        @observable_value
        class Cone:
            flavor: Flavor = Flavor.VANILLA
        """
    )

    def test_member_of_rejected_type_always_notifies(self):
        text, diagnostics = expand_source(self.SOURCE)
        assert len(diagnostics) == 1
        assert "if not self._should_notify_observers(old_value, new_value):" in text
        assert "_should_notify_observers_identity(old_value" not in text

    def test_record_runs(self):
        namespace, _ = _load(self.SOURCE)
        cone = namespace["Cone"]()
        events = _record(cone)
        cone.flavor = namespace["Flavor"].VANILLA
        assert cone.flavor is namespace["Flavor"].VANILLA
        assert events == [(EventKind.WILL_SET, "flavor"), (EventKind.DID_SET, "flavor")]
