"""
Tests for keyword seeding, market/length mapping and plan normalization.
"""

from seo_campaigns.services.planning import (
    ScrapedArticle,
    build_fallback_plan,
    format_search_location,
    generate_search_keywords,
    map_article_length_to_min_words,
    normalize_plan,
)


def test_seed_keywords_use_two_word_stem():
    keywords = generate_search_keywords("Artisan Coffee roastery in the city", "Singapore", "English")
    assert keywords == [
        "artisan coffee services",
        "professional artisan coffee",
        "artisan coffee solutions",
        "best artisan coffee",
        "artisan coffee Singapore",
    ]


def test_seed_keywords_default_country_is_online():
    assert generate_search_keywords("plumbing", "")[-1] == "plumbing online"


def test_search_location_and_length_maps():
    assert format_search_location("United Kingdom") == "GB"
    assert format_search_location("Narnia") == "US"
    assert format_search_location(None) == "US"
    assert map_article_length_to_min_words("Short (300-500 words)") == 300
    assert map_article_length_to_min_words("Very Long (2000+ words)") == 2000
    assert map_article_length_to_min_words("whatever") == 1000


def test_fallback_plan_has_exact_topic_count():
    seeds = ["coffee beans", "espresso", "latte art"]
    scraped = [ScrapedArticle(url="https://x.com/a", domain="x.com", excerpt="...")]

    plan = build_fallback_plan(seeds, 4, 700, scraped)

    assert plan.is_fallback
    assert [t.title for t in plan.topics] == [
        "Comprehensive Guide to coffee beans",
        "Comprehensive Guide to espresso",
        "Comprehensive Guide to latte art",
        "Comprehensive Guide to coffee beans (Part 2)",
    ]
    first = plan.topics[0]
    assert first.secondary_keywords[:2] == ["espresso", "latte art"]
    assert len(first.secondary_keywords) == 3
    assert first.outline == [
        "Introduction",
        "What is coffee beans?",
        "Benefits of coffee beans",
        "How to use coffee beans",
        "Conclusion",
    ]
    assert first.target_word_count == 700
    assert plan.competitors == ["x.com"]
    assert plan.citations[0]["source"] == "https://x.com/a"


def test_fallback_plan_is_deterministic():
    seeds = generate_search_keywords("artisan coffee roastery", "Singapore")
    assert build_fallback_plan(seeds, 3, 700).to_dict() == build_fallback_plan(seeds, 3, 700).to_dict()


def test_fallback_plan_without_seeds_uses_description():
    plan = build_fallback_plan([], 2, 1000, business_description="dog grooming")
    assert [t.primary_keyword for t in plan.topics] == ["dog grooming", "dog grooming"]


def test_normalize_trims_and_fits_topics():
    raw = {
        "topics": [
            {
                "title": f"Topic {i}",
                "primaryKeyword": f"kw {i}",
                "secondaryKeywords": ["a", "b", "c", "d", f"kw {i}"],
                "outline": [f"H{n}" for n in range(12)],
                "minWordCount": 300,
            }
            for i in range(5)
        ],
        "recommendedKeywords": ["x"],
        "citations": [{"source": "https://s.com", "quote": "q"}, {"quote": "no source"}],
    }

    plan = normalize_plan(raw, 3, 700, ["seed"])

    assert len(plan.topics) == 3
    assert plan.topics[0].secondary_keywords == ["a", "b", "c"]
    assert len(plan.topics[0].outline) == 8
    assert plan.topics[0].target_word_count == 700
    assert plan.citations == [{"source": "https://s.com", "quote": "q"}]


def test_normalize_pads_missing_topics_and_drops_untitled():
    raw = {"topics": [{"title": "Kept", "outline": ["One"]}, {"primaryKeyword": "no title"}, "junk"]}

    plan = normalize_plan(raw, 3, 1000, ["alpha", "beta", "gamma"])

    assert [t.title for t in plan.topics] == [
        "Kept",
        "Comprehensive Guide to beta",
        "Comprehensive Guide to gamma",
    ]
    assert plan.topics[0].primary_keyword == "kept"
    assert len(plan.topics[0].outline) == 5
    assert plan.topics[0].outline[0] == "One"


def test_normalize_splits_joined_strings():
    raw = {
        "topics": [{
            "title": "Roasting at home",
            "primaryKeyword": "home roasting",
            "secondaryKeywords": "beans, roast levels, green coffee",
            "outline": "Intro\nChoosing beans\nRoast levels\nCooling\nStorage\nConclusion",
        }],
        "contentPillars": "Guides, Reviews",
    }

    plan = normalize_plan(raw, 1, 700, ["seed"])

    topic = plan.topics[0]
    assert topic.secondary_keywords == ["beans", "roast levels", "green coffee"]
    assert topic.outline == ["Intro", "Choosing beans", "Roast levels", "Cooling", "Storage", "Conclusion"]
    assert plan.content_pillars == ["Guides", "Reviews"]


def test_normalize_ignores_non_list_fields():
    raw = {"topics": [{"title": "T", "secondaryKeywords": 42, "outline": {"a": 1}}], "citations": "none"}

    plan = normalize_plan(raw, 1, 700, ["seed"])

    assert plan.topics[0].secondary_keywords == ["t guide", "t tips", "best t"]
    assert len(plan.topics[0].outline) == 5
    assert plan.citations == []


def test_normalize_without_usable_topics_is_fallback():
    for raw in ({"foo": "bar"}, {"topics": 3}, {"topics": "a; b"}, {"topics": [{"primaryKeyword": "x"}]}):
        plan = normalize_plan(raw, 2, 700, ["alpha", "beta"])
        assert plan.is_fallback
        assert [t.title for t in plan.topics] == ["Comprehensive Guide to alpha", "Comprehensive Guide to beta"]

    described = normalize_plan({"topics": None}, 1, 700, [], business_description="dog grooming")
    assert described.topics[0].primary_keyword == "dog grooming"
