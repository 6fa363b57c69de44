from Levenshtein import distance


def calculate_text_similarity(predicted: str, ground_truth: str) -> float:
    predicted = predicted or ""
    ground_truth = ground_truth or ""

    if predicted == ground_truth:
        return 1.0

    max_length = max(len(predicted), len(ground_truth))
    if max_length == 0:
        return 1.0

    levenshtein_distance = distance(predicted, ground_truth)

    similarity = 1 - (levenshtein_distance / max_length)
    return min(max(similarity, 0.0), 1.0)
