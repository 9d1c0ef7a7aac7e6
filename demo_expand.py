#!/usr/bin/env python3
"""
Demo: Expand the example models into observable Python classes.

Shows the generated source, the diagnostic for the rejected enumeration,
and the registrar events produced by the generated accessors.
"""

from valueobs.backends import expand_source
from valueobs.examples import EXAMPLE_SOURCE
from valueobs.runtime import observe


def main():
    print("=" * 80)
    print("VALUE OBSERVATION DEMO")
    print("=" * 80)

    expanded, diagnostics = expand_source(EXAMPLE_SOURCE, path="example_models.py")
    print(expanded)

    print("-" * 80)
    print("DIAGNOSTICS:")
    for diagnostic in diagnostics:
        print(" ", diagnostic.format("example_models.py"))

    print("-" * 80)
    print("EVENTS:")
    namespace = {}
    exec(compile(expanded, "example_models.py", "exec"), namespace)
    model = namespace["Model"]()
    observe(model, lambda event: print(f"  {event.kind.value:<9} {event.key_path}"))

    model.count = 0    # unchanged, silent
    model.count = 1    # will_set / did_set
    with model._modify_tags() as tags:
        tags.append("new")
    detached = model.copy()
    detached.count = 2  # observers of `model` see nothing
    print("=" * 80)


if __name__ == "__main__":
    main()
