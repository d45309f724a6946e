from help_webapp.workingsets import (
    InMemoryResourceTree,
    InMemorySlotTransport,
    ResourceKind,
    ResourceRef,
    SlotLimits,
    StoreWarningKind,
    TocRecord,
    TopicRecord,
    WorkingSet,
    WorkingSetManager,
    split_into_slots,
    urlcodec,
)

GUIDE = "/org.example.doc.user/toc.xml"
REFERENCE = "/org.example.doc.isv/toc.xml"


def _make_tree(guide_topics=("Intro", "Install", "Usage")):
    tree = InMemoryResourceTree()
    guide = TocRecord(href=GUIDE, label="User Guide", order_index=0)
    tree.save_toc(
        guide,
        [
            TopicRecord(toc_href=GUIDE, href=f"/org.example.doc.user/{label.lower()}.html", label=label, order_index=i)
            for i, label in enumerate(guide_topics)
        ],
    )
    reference = TocRecord(href=REFERENCE, label="Reference", order_index=1)
    tree.save_toc(reference, [TopicRecord(toc_href=REFERENCE, href="/org.example.doc.isv/api.html", label="API")])
    return tree


def _topic(tree, toc_href, label):
    toc = tree.find_container(toc_href)
    for topic in tree.children_of(toc):
        if topic.label == label:
            return ResourceRef.item(toc, topic)
    raise AssertionError(f"no topic {label}")


def _toc(tree, toc_href):
    return ResourceRef.container(tree.find_container(toc_href))


def _slots_for(data, limits):
    return {i: payload for i, payload in enumerate(split_into_slots(data, limits.max_payload), start=1)}


def test_first_use_starts_empty():
    manager = WorkingSetManager(_make_tree(), InMemorySlotTransport())
    assert manager.current_working_set == ""
    assert manager.get_working_sets() == []
    assert manager.warnings == []


def test_round_trip_restores_equal_collection():
    tree = _make_tree()
    transport = InMemorySlotTransport()
    manager = WorkingSetManager(tree, transport)
    manager.add_working_set(
        manager.create_working_set("Docs & more", [_toc(tree, REFERENCE), _topic(tree, GUIDE, "Usage")])
    )
    manager.add_working_set(manager.create_working_set("empty|set_", []))
    manager.set_current_working_set("Docs & more")

    restored = WorkingSetManager(tree, transport)
    assert restored.current_working_set == "Docs & more"
    assert [ws.name for ws in restored.get_working_sets()] == ["Docs & more", "empty|set_"]
    assert restored.get_working_set("Docs & more").elements == [
        _toc(tree, REFERENCE),
        _topic(tree, GUIDE, "Usage"),
    ]
    assert restored.get_working_set("empty|set_").elements == []
    assert restored.warnings == []


def test_serialized_format():
    tree = _make_tree()
    manager = WorkingSetManager(tree, InMemorySlotTransport())
    manager.add_working_set(WorkingSet("A", [_toc(tree, GUIDE), _topic(tree, GUIDE, "Install")]))

    href = urlcodec.encode(GUIDE)
    assert manager.serialize() == f"|%41&{href}&{href}_1_"


def test_restores_literal_unencoded_state():
    tree = InMemoryResourceTree()
    tree.save_toc(TocRecord(href="href1", label="One"), [])
    transport = InMemorySlotTransport({1: "9<A|B&href1"})

    manager = WorkingSetManager(tree, transport)
    assert manager.current_working_set == "A"
    working_set = manager.get_working_set("B")
    assert working_set.elements[0].kind == ResourceKind.TOC
    assert working_set.elements[0].href == "href1"


def test_out_of_bounds_topic_is_dropped_from_its_set_only():
    transport = InMemorySlotTransport()
    manager = WorkingSetManager(_make_tree(), transport)
    tree = manager.tree
    manager.add_working_set(WorkingSet("mixed", [_topic(tree, GUIDE, "Usage"), _toc(tree, REFERENCE)]))
    manager.add_working_set(WorkingSet("only usage", [_topic(tree, GUIDE, "Usage")]))

    shrunk = _make_tree(guide_topics=("Intro", "Install"))
    restored = WorkingSetManager(shrunk, transport)

    assert restored.get_working_set("mixed").elements == [_toc(shrunk, REFERENCE)]
    assert restored.get_working_set("only usage").elements == []
    kinds = [w.kind for w in restored.warnings]
    assert kinds == [StoreWarningKind.UNRESOLVED_REFERENCE, StoreWarningKind.UNRESOLVED_REFERENCE]


def test_missing_toc_is_dropped():
    tree = _make_tree()
    transport = InMemorySlotTransport()
    WorkingSetManager(tree, transport).add_working_set(WorkingSet("ref", [_toc(tree, REFERENCE), _toc(tree, GUIDE)]))

    tree.remove_toc(REFERENCE)
    restored = WorkingSetManager(tree, transport)
    assert restored.get_working_set("ref").elements == [_toc(tree, GUIDE)]


def test_topic_index_is_recomputed_on_save():
    tree = _make_tree()
    transport = InMemorySlotTransport()
    manager = WorkingSetManager(tree, transport)
    usage = _topic(tree, GUIDE, "Usage")
    manager.add_working_set(WorkingSet("usage", [usage]))
    assert manager.serialize().endswith("_2_")

    guide = tree.find_container(GUIDE)
    topics = [TopicRecord(toc_href=GUIDE, href="/org.example.doc.user/new.html", label="New", order_index=-1)]
    tree.save_toc(guide, topics + tree.children_of(guide))
    assert manager.working_set_changed(manager.get_working_set("usage")) is True
    assert manager.serialize().endswith("_3_")

    restored = WorkingSetManager(tree, transport)
    assert restored.get_working_set("usage").elements == [usage]


def test_topic_survives_reseeding_with_renumbered_order():
    tree = _make_tree(guide_topics=("Intro", "Usage"))
    transport = InMemorySlotTransport()
    manager = WorkingSetManager(tree, transport)
    manager.add_working_set(WorkingSet("ws", [_topic(tree, GUIDE, "Usage")]))

    reseeded = _make_tree(guide_topics=("New", "Intro", "Usage"))
    manager.tree = reseeded
    assert manager.set_current_working_set("ws") is True
    assert manager.serialize().endswith("_2_")
    assert manager.warnings == []

    restored = WorkingSetManager(reseeded, transport)
    assert [e.href for e in restored.get_working_set("ws").elements] == ["/org.example.doc.user/usage.html"]


def test_topic_removed_from_tree_is_not_saved():
    tree = _make_tree()
    manager = WorkingSetManager(tree, InMemorySlotTransport())
    manager.add_working_set(WorkingSet("usage", [_topic(tree, GUIDE, "Usage"), _toc(tree, GUIDE)]))

    guide = tree.find_container(GUIDE)
    tree.save_toc(guide, tree.children_of(guide)[:2])
    assert manager.serialize() == f"|{urlcodec.encode('usage')}&{urlcodec.encode(GUIDE)}"
    assert manager.warnings[-1].kind == StoreWarningKind.UNRESOLVED_REFERENCE


def test_duplicate_add_is_a_no_op():
    tree = _make_tree()
    transport = InMemorySlotTransport()
    manager = WorkingSetManager(tree, transport)
    manager.add_working_set(WorkingSet("guide", [_toc(tree, GUIDE)]))
    before = dict(transport.slots)
    writes = len(transport.history)

    assert manager.add_working_set(WorkingSet("guide", [_toc(tree, REFERENCE)])) is False
    assert manager.add_working_set(None) is False
    assert transport.slots == before
    assert len(transport.history) == writes
    assert manager.get_working_set("guide").elements == [_toc(tree, GUIDE)]


def test_capacity_overflow_keeps_previous_state():
    tree = _make_tree()
    transport = InMemorySlotTransport()
    limits = SlotLimits(max_slots=2, max_payload=64)
    manager = WorkingSetManager(tree, transport, limits=limits)
    assert manager.add_working_set(WorkingSet("a", [])) is True
    before = dict(transport.slots)

    big = WorkingSet("b" * 40, [_toc(tree, GUIDE), _toc(tree, REFERENCE)])
    assert manager.add_working_set(big) is False
    assert transport.slots == before
    assert manager.warnings[-1].kind == StoreWarningKind.CAPACITY_EXCEEDED

    restored = WorkingSetManager(tree, transport, limits=limits)
    assert [ws.name for ws in restored.get_working_sets()] == ["a"]


def test_removing_a_large_set_prunes_continuation_slots():
    tree = _make_tree()
    transport = InMemorySlotTransport()
    limits = SlotLimits(max_slots=8, max_payload=50)
    manager = WorkingSetManager(tree, transport, limits=limits)
    manager.add_working_set(WorkingSet("small", []))
    manager.add_working_set(WorkingSet("large", [_toc(tree, GUIDE), _toc(tree, REFERENCE)]))
    assert len(transport.slots) > 2

    manager.remove_working_set(manager.get_working_set("large"))
    assert sorted(transport.slots) == [1]

    restored = WorkingSetManager(tree, transport, limits=limits)
    assert [ws.name for ws in restored.get_working_sets()] == ["small"]
    assert restored.warnings == []


def test_sets_are_kept_in_sort_order():
    manager = WorkingSetManager(_make_tree(), InMemorySlotTransport())
    for name in ("beta", "Alpha", "gamma"):
        manager.add_working_set(WorkingSet(name, []))
    assert [ws.name for ws in manager.get_working_sets()] == ["Alpha", "beta", "gamma"]

    reverse = WorkingSetManager(
        _make_tree(), InMemorySlotTransport(), sort_key=lambda ws: [-ord(c) for c in ws.name]
    )
    for name in ("a", "c", "b"):
        reverse.add_working_set(WorkingSet(name, []))
    assert [ws.name for ws in reverse.get_working_sets()] == ["c", "b", "a"]


def test_get_and_remove_working_set():
    tree = _make_tree()
    transport = InMemorySlotTransport()
    manager = WorkingSetManager(tree, transport)
    manager.add_working_set(WorkingSet("one", []))
    manager.add_working_set(WorkingSet("two", []))

    assert manager.get_working_set("three") is None
    assert manager.get_working_set(None) is None
    manager.remove_working_set(manager.get_working_set("one"))

    restored = WorkingSetManager(tree, transport)
    assert [ws.name for ws in restored.get_working_sets()] == ["two"]


def test_clearing_current_selection():
    tree = _make_tree()
    transport = InMemorySlotTransport()
    manager = WorkingSetManager(tree, transport)
    manager.add_working_set(WorkingSet("one", []))
    manager.set_current_working_set("one")
    manager.set_current_working_set(None)
    assert WorkingSetManager(tree, transport).current_working_set == ""


def test_malformed_references_are_skipped():
    tree = _make_tree()
    limits = SlotLimits()
    guide = urlcodec.encode(GUIDE)
    data = f"|{urlcodec.encode('s')}&abc_&{guide}_x_&{guide}_0_&%zz"
    manager = WorkingSetManager(tree, InMemorySlotTransport(_slots_for(data, limits)), limits=limits)

    assert [e.label for e in manager.get_working_set("s").elements] == ["Intro"]
    assert [w.kind for w in manager.warnings] == [
        StoreWarningKind.MALFORMED_REFERENCE,
        StoreWarningKind.MALFORMED_REFERENCE,
        StoreWarningKind.CODEC_ERROR,
    ]


def test_undecodable_set_name_drops_that_set():
    tree = _make_tree()
    limits = SlotLimits()
    data = f"%zz|%ff&{urlcodec.encode(GUIDE)}|{urlcodec.encode('ok')}"
    manager = WorkingSetManager(tree, InMemorySlotTransport(_slots_for(data, limits)), limits=limits)

    assert manager.current_working_set == ""
    assert [ws.name for ws in manager.get_working_sets()] == ["ok"]
    assert [w.kind for w in manager.warnings] == [StoreWarningKind.CODEC_ERROR, StoreWarningKind.CODEC_ERROR]


def test_duplicate_names_in_stored_state_keep_the_first():
    tree = _make_tree()
    limits = SlotLimits()
    name = urlcodec.encode("dup")
    data = f"|{name}&{urlcodec.encode(GUIDE)}|{name}&{urlcodec.encode(REFERENCE)}"
    manager = WorkingSetManager(tree, InMemorySlotTransport(_slots_for(data, limits)), limits=limits)
    assert manager.get_working_set("dup").elements == [_toc(tree, GUIDE)]


def test_bad_header_restores_empty_state():
    manager = WorkingSetManager(_make_tree(), InMemorySlotTransport({1: "abc<|x"}))
    assert manager.get_working_sets() == []
    assert [w.kind for w in manager.warnings] == [StoreWarningKind.MALFORMED_HEADER]
