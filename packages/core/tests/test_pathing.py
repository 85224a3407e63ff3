from devpulse_core.pathing import canonicalize_repo_relative_path, display_name, unique_paths


def test_canonicalize_repo_relative_path_equivalence() -> None:
    expected = "src/api/users.py"
    assert canonicalize_repo_relative_path("./src/api/users.py") == expected
    assert canonicalize_repo_relative_path("src/api/users.py") == expected
    assert canonicalize_repo_relative_path(r"src\api\users.py") == expected
    assert canonicalize_repo_relative_path("/src//api/users.py") == expected


def test_unique_paths_keeps_first_seen_order() -> None:
    assert unique_paths(["b.py", "./a.py", "b.py", "", "a.py"]) == ("b.py", "a.py")


def test_display_name() -> None:
    assert display_name("src/api/users.py") == "users.py"
    assert display_name("README.md") == "README.md"
