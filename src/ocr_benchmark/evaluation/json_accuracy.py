from typing import Any, List, Tuple

from ocr_benchmark.model_types.models import DiffEntry, DiffKind, JsonDiff, PathSegment


def value_kind(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    return type(value).__name__


def count_total_fields(obj: Any) -> int:
    """Number of leaf scalar paths under ``obj``; a container with no leaves counts as one."""
    if isinstance(obj, dict):
        total = sum(count_total_fields(value) for value in obj.values())
    elif isinstance(obj, (list, tuple)):
        total = sum(count_total_fields(item) for item in obj)
    else:
        return 1
    return max(total, 1)


class _DiffWalker:

    def __init__(self):
        self.entries: List[DiffEntry] = []
        self.total_fields = 0
        self.mismatched_fields = 0

    def _emit(self, path, kind, expected, predicted, fields):
        self.entries.append(DiffEntry(path=path, kind=kind, expected=expected, predicted=predicted))
        self.total_fields += fields
        self.mismatched_fields += fields

    def compare(self, expected: Any, predicted: Any, path: Tuple[PathSegment, ...]) -> None:
        expected_kind = value_kind(expected)
        predicted_kind = value_kind(predicted)

        if expected_kind == "object" and predicted_kind == "object":
            for key in expected:
                if key not in predicted:
                    value = expected[key]
                    self._emit(path + (key,), DiffKind.MISSING, value, None, count_total_fields(value))
                else:
                    self.compare(expected[key], predicted[key], path + (key,))
            for key in predicted:
                if key not in expected:
                    value = predicted[key]
                    self._emit(path + (key,), DiffKind.EXTRA, None, value, count_total_fields(value))
            return

        if expected_kind == "array" and predicted_kind == "array":
            shared = min(len(expected), len(predicted))
            for index in range(shared):
                self.compare(expected[index], predicted[index], path + (index,))
            for index in range(shared, len(expected)):
                value = expected[index]
                self._emit(path + (index,), DiffKind.MISSING, value, None, count_total_fields(value))
            for index in range(shared, len(predicted)):
                value = predicted[index]
                self._emit(path + (index,), DiffKind.EXTRA, None, value, count_total_fields(value))
            return

        if expected_kind != predicted_kind:
            if expected_kind in ("object", "array") or predicted_kind in ("object", "array"):
                fields = count_total_fields(expected) + count_total_fields(predicted)
            else:
                fields = 1
            self._emit(path, DiffKind.TYPE_MISMATCH, expected, predicted, fields)
            return

        self.total_fields += 1
        if expected != predicted:
            self.entries.append(
                DiffEntry(path=path, kind=DiffKind.VALUE_MISMATCH, expected=expected, predicted=predicted)
            )
            self.mismatched_fields += 1


def calculate_json_accuracy(expected: Any, predicted: Any) -> Tuple[float, JsonDiff]:
    """Score ``predicted`` against the ground truth ``expected``.

    Both values are walked in lock-step by field path. Every leaf of the
    ground truth is a graded field, and so is every leaf the prediction adds.
    A missing, extra, mistyped or wrong leaf each costs one field, so

        accuracy = 1 - mismatched_fields / total_fields

    When the kinds differ at a container (say an object where a string was
    expected) one ``type_mismatch`` entry is recorded at that path and every
    leaf on both sides of it is counted as mismatched. Lists are compared by
    position. Numbers compare exactly, ``1`` and ``1.0`` are equal, booleans
    are never numbers.

    Returns the accuracy and a :class:`JsonDiff` with the entries and counts.
    """
    walker = _DiffWalker()
    walker.compare(expected, predicted, ())

    if walker.total_fields == 0:
        accuracy = 1.0
    else:
        accuracy = 1.0 - walker.mismatched_fields / walker.total_fields
        accuracy = min(max(accuracy, 0.0), 1.0)

    diff = JsonDiff(
        entries=tuple(walker.entries),
        total_fields=walker.total_fields,
        mismatched_fields=walker.mismatched_fields,
    )
    return accuracy, diff
