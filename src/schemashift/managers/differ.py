"""Structural comparison of two schema snapshots."""

from typing import Dict, List, Optional, Tuple

from schemashift.models import (
    ChangeType,
    ColumnSnapshot,
    DiffResult,
    SchemaChange,
    SchemaSnapshot,
    TableSnapshot,
)

# Weights of the attributes compared when scoring a rename candidate
_SIMILARITY_WEIGHTS = (
    ("type", 3),
    ("nullable", 1),
    ("primary", 1),
    ("unique", 1),
)


def column_similarity(a: ColumnSnapshot, b: ColumnSnapshot) -> float:
    """Score how alike two columns are, from 0 (nothing shared) to 1 (identical).

    The type dominates the score; nullability, primary and unique flags
    contribute one point each.
    """
    total = sum(weight for _, weight in _SIMILARITY_WEIGHTS)
    score = sum(
        weight
        for attr, weight in _SIMILARITY_WEIGHTS
        if getattr(a, attr) == getattr(b, attr)
    )
    return score / total


def _index_key(table: str, index) -> Tuple[str, Tuple[str, ...], bool]:
    return (index.resolved_name(table), tuple(index.columns), index.unique)


def _fk_key(fk) -> Tuple[str, str, str, str]:
    return (fk.column, fk.target_table, fk.target_column, fk.on_delete or "")


def _column_alteration(
    table_name: str, name: str, before_col: ColumnSnapshot, after_col: ColumnSnapshot
) -> Optional[SchemaChange]:
    """A column_type_changed for ``name``, or None when nothing it tracks differs."""
    fields = {}
    if before_col.type != after_col.type:
        fields.update(old_type=before_col.type, new_type=after_col.type)
    if before_col.nullable != after_col.nullable:
        fields.update(old_nullable=before_col.nullable, new_nullable=after_col.nullable)
    if before_col.default != after_col.default:
        fields.update(
            old_default=before_col.default,
            new_default=after_col.default,
            default_changed=True,
        )
    if not fields:
        return None
    return SchemaChange(
        type=ChangeType.COLUMN_TYPE_CHANGED,
        table=table_name,
        column=name,
        **fields,
    )


def _diff_columns(
    table_name: str, before: TableSnapshot, after: TableSnapshot
) -> List[SchemaChange]:
    changes: List[SchemaChange] = []

    removed = [name for name in before.columns if name not in after.columns]
    added = [name for name in after.columns if name not in before.columns]

    # A single same-typed add/remove pair is reported as a rename suggestion.
    # Anything else is ambiguous and stays as separate changes.
    if (
        len(removed) == 1
        and len(added) == 1
        and before.columns[removed[0]].type == after.columns[added[0]].type
    ):
        old_name, new_name = removed[0], added[0]
        changes.append(
            SchemaChange(
                type=ChangeType.COLUMN_RENAMED,
                table=table_name,
                old_column=old_name,
                new_column=new_name,
                confidence=column_similarity(
                    before.columns[old_name], after.columns[new_name]
                ),
            )
        )
        # The renamed column is altered under its new name
        alteration = _column_alteration(
            table_name, new_name, before.columns[old_name], after.columns[new_name]
        )
        if alteration:
            changes.append(alteration)
        removed, added = [], []

    for name in added:
        changes.append(
            SchemaChange(type=ChangeType.COLUMN_ADDED, table=table_name, column=name)
        )
    for name in removed:
        changes.append(
            SchemaChange(type=ChangeType.COLUMN_REMOVED, table=table_name, column=name)
        )

    for name, after_col in after.columns.items():
        before_col = before.columns.get(name)
        if before_col is None:
            continue

        alteration = _column_alteration(table_name, name, before_col, after_col)
        if alteration:
            changes.append(alteration)

    return changes


def _diff_indexes(
    table_name: str, before: TableSnapshot, after: TableSnapshot
) -> List[SchemaChange]:
    changes: List[SchemaChange] = []
    before_keys = {_index_key(table_name, idx) for idx in before.indexes}
    after_keys = {_index_key(table_name, idx) for idx in after.indexes}

    for idx in after.indexes:
        if _index_key(table_name, idx) not in before_keys:
            changes.append(
                SchemaChange(
                    type=ChangeType.INDEX_ADDED,
                    table=table_name,
                    index_name=idx.resolved_name(table_name),
                    columns=list(idx.columns),
                    unique=idx.unique,
                )
            )
    for idx in before.indexes:
        if _index_key(table_name, idx) not in after_keys:
            changes.append(
                SchemaChange(
                    type=ChangeType.INDEX_REMOVED,
                    table=table_name,
                    index_name=idx.resolved_name(table_name),
                    columns=list(idx.columns),
                    unique=idx.unique,
                )
            )
    return changes


def _diff_foreign_keys(
    table_name: str, before: TableSnapshot, after: TableSnapshot
) -> List[SchemaChange]:
    changes: List[SchemaChange] = []
    before_keys = {_fk_key(fk) for fk in before.foreign_keys}
    after_keys = {_fk_key(fk) for fk in after.foreign_keys}

    for fk in after.foreign_keys:
        if _fk_key(fk) not in before_keys:
            changes.append(
                SchemaChange(
                    type=ChangeType.FOREIGN_KEY_ADDED, table=table_name, foreign_key=fk
                )
            )
    for fk in before.foreign_keys:
        if _fk_key(fk) not in after_keys:
            changes.append(
                SchemaChange(
                    type=ChangeType.FOREIGN_KEY_REMOVED, table=table_name, foreign_key=fk
                )
            )
    return changes


def _diff_enums(
    before: Dict[str, List[str]], after: Dict[str, List[str]]
) -> List[SchemaChange]:
    changes: List[SchemaChange] = []

    for name in sorted(after):
        if name not in before:
            changes.append(SchemaChange(type=ChangeType.ENUM_ADDED, enum_name=name))
    for name in sorted(before):
        if name not in after:
            changes.append(SchemaChange(type=ChangeType.ENUM_REMOVED, enum_name=name))

    for name in sorted(after):
        if name not in before:
            continue
        before_values = before[name]
        after_values = after[name]
        added = [v for v in after_values if v not in before_values]
        removed = [v for v in before_values if v not in after_values]
        if added or removed:
            changes.append(
                SchemaChange(
                    type=ChangeType.ENUM_CHANGED,
                    enum_name=name,
                    added_values=added,
                    removed_values=removed,
                )
            )
    return changes


def compute_diff(previous: SchemaSnapshot, current: SchemaSnapshot) -> DiffResult:
    """Compute the ordered list of changes turning ``previous`` into ``current``.

    Tables and enums are visited in sorted name order, so their order in the
    snapshots does not affect the result. Columns, indexes and foreign keys
    are visited in declaration order.

    Args:
        previous: Snapshot the database currently matches
        current: Snapshot the database should match afterwards

    Returns:
        DiffResult; empty when the snapshots are structurally equal
    """
    changes: List[SchemaChange] = []

    for name in sorted(current.tables):
        if name not in previous.tables:
            changes.append(SchemaChange(type=ChangeType.TABLE_ADDED, table=name))

    for name in sorted(previous.tables):
        if name not in current.tables:
            changes.append(SchemaChange(type=ChangeType.TABLE_REMOVED, table=name))

    for name in sorted(current.tables):
        before = previous.tables.get(name)
        if before is None:
            continue
        after = current.tables[name]
        changes.extend(_diff_columns(name, before, after))
        changes.extend(_diff_indexes(name, before, after))
        changes.extend(_diff_foreign_keys(name, before, after))

    changes.extend(_diff_enums(previous.enums, current.enums))

    return DiffResult(changes=changes)
