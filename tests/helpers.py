def assert_valid_combination(combination, is_double=False):
    length = 7 if is_double else 6
    assert len(combination) == length
    assert len(set(combination)) == length
    assert all(isinstance(n, int) and 1 <= n <= 49 for n in combination)
    assert combination == sorted(combination)
