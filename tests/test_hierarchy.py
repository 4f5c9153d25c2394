from ledger_sync.hierarchy import GroupHierarchy
from ledger_sync.models import NO_GROUP, LedgerRecord


def _chain_hierarchy():
    return GroupHierarchy({"A": "B", "B": "C", "C": "Receivables", "Receivables": None})


def test_nearest_known_group_returns_first_known_ancestor():
    hierarchy = _chain_hierarchy()
    assert hierarchy.nearest_known_group("A", {"B", "C"}) == "B"
    assert hierarchy.nearest_known_group("A", {"A", "B"}) == "A"
    assert hierarchy.nearest_known_group("A", {"Elsewhere"}) == NO_GROUP


def test_traces_to_root_follows_parent_links():
    hierarchy = _chain_hierarchy()
    assert hierarchy.traces_to_root("A", "Receivables") is True
    assert hierarchy.traces_to_root("A", "Payables") is False
    assert hierarchy.traces_to_root(None, "Receivables") is False


def test_dangling_parent_references_end_the_walk():
    hierarchy = GroupHierarchy({"Ledger": "Missing Group"})
    assert hierarchy.traces_to_root("Ledger", "Receivables") is False
    assert hierarchy.nearest_known_group("Ledger", {"Jeypur"}) == NO_GROUP


def test_cyclic_parent_map_terminates_with_fallback(caplog):
    hierarchy = GroupHierarchy({"X": "Y", "Y": "X"})
    assert hierarchy.traces_to_root("X", "Receivables") is False
    assert hierarchy.nearest_known_group("X", {"Jeypur"}) == NO_GROUP
    assert "exceeds 15 levels" in caplog.text


def test_depth_bound_limits_long_chains():
    parent_of = {f"L{i}": f"L{i + 1}" for i in range(20)}
    parent_of["L20"] = None
    assert GroupHierarchy(parent_of).traces_to_root("L0", "L20") is False
    assert GroupHierarchy(parent_of, max_depth=25).traces_to_root("L0", "L20") is True


def test_classify_reports_bucket_and_roots():
    hierarchy = GroupHierarchy.from_records(
        groups=[
            LedgerRecord("Sundry Debtors", None),
            LedgerRecord("Jeypur", "Sundry Debtors"),
            LedgerRecord("Jeypur Town", "Jeypur"),
            LedgerRecord("Sundry Creditors", ""),
        ],
        ledgers=[LedgerRecord("Ram Traders", "Jeypur Town", "-100")],
    )
    classification = hierarchy.classify("Jeypur Town", {"Jeypur"}, roots=("Sundry Debtors", "Sundry Creditors"))
    assert classification.bucket == "Jeypur"
    assert classification.is_under_root("Sundry Debtors")
    assert not classification.is_under_root("Sundry Creditors")

    creditor = hierarchy.classify("Sundry Creditors", {"Jeypur"}, roots=("Sundry Debtors", "Sundry Creditors"))
    assert creditor.bucket == NO_GROUP
    assert creditor.is_under_root("Sundry Creditors")
    assert hierarchy.parent("Ram Traders") == "Jeypur Town"
