"""Unit tests for link classification."""
import pytest

from linkcrawler.classify import (
    Classification,
    SecondaryDocumentPolicy,
    classify,
    classify_navigation,
)

LINK = "http://x/page.html"


@pytest.mark.parametrize("status", [200, 204, 301, 399])
def test_requested_link_below_400_is_ok(status):
    assert classify(LINK, LINK, status) is Classification.OK


@pytest.mark.parametrize("status", [400, 404, 500])
def test_requested_link_failure_is_broken(status):
    assert classify(LINK, LINK, status) is Classification.BROKEN


def test_ignored_status_wins_over_failure():
    assert classify(LINK, LINK, 403, ignore_statuses={403}) is Classification.IGNORED


def test_failing_secondary_document_is_broken():
    verdict = classify(LINK, "http://x/partial.md", 404)

    assert verdict is Classification.BROKEN


def test_sidebar_document_is_not_tracked():
    assert classify(LINK, "http://x/_sidebar.md", 404) is None
    assert classify(LINK, "http://x/docs/_sidebar.md", 404) is None


def test_successful_secondary_document_is_not_tracked():
    assert classify(LINK, "http://x/partial.md", 200) is None


def test_unrelated_side_resource_is_not_tracked():
    assert classify(LINK, "http://x/app.js", 404) is None
    assert classify(LINK, "http://x/logo.png", 500) is None


def test_secondary_document_ignores_ignore_list():
    # the ignore list applies to requested links only
    verdict = classify(LINK, "http://x/private.md", 403, ignore_statuses={403})

    assert verdict is Classification.BROKEN


def test_policy_matches_on_path_not_query():
    policy = SecondaryDocumentPolicy()

    assert policy("http://x/README.md?v=2")
    assert not policy("http://x/page.html?file=a.md")


def test_custom_policy():
    policy = SecondaryDocumentPolicy(suffixes=(".md", ".json"), excluded_names=("_navbar.md",))

    assert policy("http://x/data/items.json")
    assert policy("http://x/_sidebar.md")
    assert not policy("http://x/_navbar.md")
    assert classify(LINK, "http://x/data/items.json", 404, is_secondary_document=policy) is Classification.BROKEN


def test_classification_is_idempotent():
    first = classify(LINK, LINK, 404, {403})
    second = classify(LINK, LINK, 404, {403})

    assert first is second is Classification.BROKEN


class TestClassifyNavigation:
    def test_transport_error_is_broken(self):
        assert classify_navigation(LINK, None, error="net::ERR_NAME_NOT_RESOLVED") is Classification.BROKEN

    def test_missing_response_is_ok(self):
        assert classify_navigation(LINK, None) is Classification.OK

    def test_success(self):
        assert classify_navigation(LINK, 200) is Classification.OK

    def test_non_2xx_final_status_is_broken(self):
        assert classify_navigation(LINK, 304) is Classification.BROKEN

    def test_ignored_final_status(self):
        assert classify_navigation(LINK, 401, ignore_statuses={401, 403}) is Classification.IGNORED

    def test_not_found(self):
        assert classify_navigation(LINK, 404, ignore_statuses={403}) is Classification.BROKEN
