import json
import unittest
from app.schemas import QuizAnswers
from app.services.ai_engine.intent_extractor import IntentParseError
from app.services.ai_engine.reranker import FALLBACK_REASON
from app.services.candidate_provider import CatalogUnavailableError
from app.services.candidates import normalize_item
from app.services.fit_scoring import score_candidate
from app.services.llm_client import LLMError
from app.services.recommendations import RecommendationService
from app.services.tmdb_client import CatalogError


class FakeCatalog:
    """In-memory TMDB: `routes` maps endpoint -> callable(params) -> results list."""

    def __init__(self, routes=None, fail=()):
        self.routes = routes or {}
        self.fail = set(fail)
        self.calls = []

    async def query(self, endpoint, params=None):
        params = dict(params or {})
        self.calls.append((endpoint, params))
        if endpoint in self.fail:
            raise CatalogError(503, "unavailable", endpoint)
        route = self.routes.get(endpoint)
        return {"results": route(params) if route else []}

    async def search_multi(self, query, include_adult=False, page=1):
        return await self.query("/search/multi", {"query": query, "include_adult": include_adult, "page": page})

    async def details(self, tmdb_id, media_type="movie"):
        return {"id": tmdb_id, "media_type": media_type}

    async def genres(self, media_type="movie"):
        return [{"id": 28, "name": "Action"}]


class FakeLLM:
    def __init__(self, outputs=(), error=None, configured=True):
        self.outputs = list(outputs)
        self.error = error
        self.is_configured = configured
        self.calls = []

    async def chat_json(self, messages, temperature=0.3):
        self.calls.append(messages)
        if self.error:
            raise self.error
        return self.outputs.pop(0)


def movie(idx, genres=(), vote=7.0, popularity=100.0, **extra):
    item = {"id": idx, "title": f"Movie {idx}", "overview": f"Overview {idx}", "genre_ids": list(genres), "vote_average": vote, "popularity": popularity}
    item.update(extra)
    return item


def quiz_routes(discover_count=3):
    def discover(params):
        if params.get("sort_by") == "vote_average.desc":
            return [movie(30, genres=[878], vote=8.1, popularity=20)]
        return [movie(20 + i, genres=[28, 878], vote=7.0 - i * 0.1, popularity=400) for i in range(discover_count)] + [movie(1, genres=[28])]

    return {
        "/movie/27205/recommendations": lambda p: [movie(1, genres=[28, 878, 12], vote=8.4, popularity=150), movie(2, genres=[878], vote=7.9, popularity=80)],
        "/discover/movie": discover,
        "/trending/movie/week": lambda p: [movie(40, genres=[35], vote=6.5, popularity=3000), movie(2)],
    }


INCEPTION_QUIZ = QuizAnswers(genres=[28, 878], era="modern", mood="intense", runtime="long", seedMovieId="movie-27205")


class TestQuizPipeline(unittest.IsolatedAsyncioTestCase):
    def service(self, catalog, llm):
        return RecommendationService(catalog=catalog, llm=llm, quiz_top_n=15, prompt_max_candidates=50, strategy_timeout=1.0, rerank_enabled=True)

    async def test_scenario_with_ai(self):
        catalog = FakeCatalog(quiz_routes())
        ids = [1, 2, 20, 21, 22, 30, 40]
        ranking = [{"id": i, "matchScore": 90 - n, "vibeScore": 80, "matchReason": f"Reason {i}"} for n, i in enumerate(ids)]
        llm = FakeLLM([json.dumps({"movies": ranking})])

        results = await self.service(catalog, llm).recommend_from_quiz(INCEPTION_QUIZ)

        self.assertEqual(len(catalog.calls), 4)
        self.assertEqual([r.id for r in results], ids)
        self.assertTrue(all(r.match_reason for r in results))
        self.assertEqual(len({r.id for r in results}), len(results))
        # id 1 arrives from seed and discover; seed provenance survives
        self.assertEqual(next(r for r in results if r.id == 1).strategy, "seed")
        self.assertIn("Runtime: long", llm.calls[0][0]["content"])

    async def test_scenario_ai_failing_keeps_heuristics(self):
        catalog = FakeCatalog(quiz_routes())
        results = await self.service(catalog, FakeLLM(error=LLMError("groq down"))).recommend_from_quiz(INCEPTION_QUIZ)

        scores = [r.match_score for r in results]
        self.assertEqual(scores, sorted(scores, reverse=True))
        self.assertEqual(results[0].id, 1)
        for r in results:
            fresh = normalize_item({"id": r.id, "genre_ids": r.genre_ids, "vote_average": r.vote_average, "popularity": r.popularity, "strategy": r.strategy})
            self.assertAlmostEqual(r.match_score, score_candidate(fresh, [28, 878]))
            self.assertEqual(r.match_reason, FALLBACK_REASON)
            self.assertGreaterEqual(r.vibe_score, 40)
            self.assertLessEqual(r.vibe_score, 98)

    async def test_ai_not_configured(self):
        llm = FakeLLM(configured=False)
        results = await self.service(FakeCatalog(quiz_routes()), llm).recommend_from_quiz(INCEPTION_QUIZ)
        self.assertEqual(llm.calls, [])
        self.assertTrue(results)
        self.assertTrue(all(r.match_reason == FALLBACK_REASON for r in results))

    async def test_truncates_to_top_fifteen(self):
        results = await self.service(FakeCatalog(quiz_routes(discover_count=30)), FakeLLM(configured=False)).recommend_from_quiz(INCEPTION_QUIZ)
        self.assertEqual(len(results), 15)

    async def test_one_failing_strategy_does_not_fail_request(self):
        catalog = FakeCatalog(quiz_routes(), fail={"/trending/movie/week"})
        results = await self.service(catalog, FakeLLM(configured=False)).recommend_from_quiz(INCEPTION_QUIZ)
        self.assertNotIn(40, [r.id for r in results])
        self.assertIn(1, [r.id for r in results])

    async def test_catalog_outage_is_not_an_empty_result(self):
        catalog = FakeCatalog(fail={"/movie/27205/recommendations", "/discover/movie", "/trending/movie/week"})
        llm = FakeLLM()
        with self.assertRaises(CatalogUnavailableError) as ctx:
            await self.service(catalog, llm).recommend_from_quiz(INCEPTION_QUIZ)
        self.assertEqual(len(ctx.exception.failed), 4)
        self.assertEqual(llm.calls, [])

    async def test_no_matches_is_an_empty_result(self):
        llm = FakeLLM()
        self.assertEqual(await self.service(FakeCatalog(), llm).recommend_from_quiz(INCEPTION_QUIZ), [])
        self.assertEqual(llm.calls, [])


STARTUP_INTENT = {
    "representative_titles": ["The Social Network"],
    "search_queries": ["startup"],
    "genre_names": ["drama"],
    "era": None,
    "include_tv": False,
    "keywords": ["startup", "entrepreneur"],
}


def prompt_routes():
    def search(params):
        if params["query"] == "The Social Network":
            return [
                {"id": 37799, "title": "The Social Network", "overview": "Facebook founder story", "media_type": "movie", "vote_count": 12000},
                {"id": 500, "name": "Jesse Eisenberg", "media_type": "person"},
                {"id": 37800, "title": "Social Network Doc", "overview": "An entrepreneur documentary", "media_type": "movie", "vote_count": 15},
                {"id": 37801, "title": "Ignored fourth", "media_type": "movie", "vote_count": 9000},
            ]
        return [{"id": 60000 + i, "name": f"Startup Show {i}", "overview": "startup life", "media_type": "tv", "first_air_date": "2015-01-01"} for i in range(8)]

    def discover(params):
        return [movie(1000 + i, genres=[18], vote=7.0, vote_count=500 + i) for i in range(60)] + [movie(2000, genres=[18], vote_count=3)]

    return {"/search/multi": search, "/discover/movie": discover}


class TestPromptPipeline(unittest.IsolatedAsyncioTestCase):
    def service(self, catalog, llm):
        return RecommendationService(catalog=catalog, llm=llm, quiz_top_n=15, prompt_max_candidates=50, strategy_timeout=1.0, rerank_enabled=True)

    async def test_scenario(self):
        catalog = FakeCatalog(prompt_routes())
        ranking = {"ranking": [{"id": "60000", "matchScore": 97, "vibeScore": 91, "matchReason": "Founders and caffeine."},
                               {"id": 37799, "matchScore": 95, "vibeScore": 90, "matchReason": "The definitive startup movie."}]}
        llm = FakeLLM([json.dumps(STARTUP_INTENT), json.dumps(ranking)])

        results = await self.service(catalog, llm).recommend_from_prompt("movies about startup culture")

        queries = [(e, p.get("query"), p.get("with_genres")) for e, p in catalog.calls]
        self.assertIn(("/search/multi", "The Social Network", None), queries)
        self.assertIn(("/search/multi", "startup", None), queries)
        self.assertIn(("/discover/movie", None, "18"), queries)
        self.assertNotIn("/discover/tv", [e for e, _ in catalog.calls])
        self.assertEqual(len(results), 50)
        self.assertEqual([r.id for r in results[:2]], [60000, 37799])
        self.assertNotIn(500, [r.id for r in results])
        self.assertNotIn(37801, [r.id for r in results])
        self.assertNotIn(2000, [r.id for r in results])
        self.assertEqual(next(r for r in results if r.id == 60000).media_type, "tv")

    async def test_rerank_failure_keeps_merge_order(self):
        catalog = FakeCatalog(prompt_routes())
        llm = FakeLLM([json.dumps(STARTUP_INTENT), "not json"])
        results = await self.service(catalog, llm).recommend_from_prompt("movies about startup culture")
        self.assertEqual([r.id for r in results[:3]], [37799, 37800, 60000])
        self.assertTrue(all(r.match_reason == FALLBACK_REASON for r in results))

    async def test_intent_failure_is_hard(self):
        catalog = FakeCatalog(prompt_routes())
        with self.assertRaises(IntentParseError):
            await self.service(catalog, FakeLLM(["Sorry, I can't help"])).recommend_from_prompt("startups")
        self.assertEqual(catalog.calls, [])

    async def test_catalog_outage_after_intent(self):
        catalog = FakeCatalog(prompt_routes(), fail={"/search/multi", "/discover/movie"})
        llm = FakeLLM([json.dumps(STARTUP_INTENT)])
        with self.assertRaises(CatalogUnavailableError):
            await self.service(catalog, llm).recommend_from_prompt("movies about startup culture")
        self.assertEqual(len(llm.calls), 1)


class TestSearchAndDetails(unittest.IsolatedAsyncioTestCase):
    async def test_batman_search(self):
        catalog = FakeCatalog({"/search/multi": lambda p: [
            {"id": 268, "title": "Batman", "release_date": "1989-06-23", "media_type": "movie"},
            {"id": 2098, "name": "Batman: The Animated Series", "first_air_date": "1992-09-05", "media_type": "tv"},
            {"id": 3894, "name": "Christian Bale", "media_type": "person"},
        ]})
        service = RecommendationService(catalog=catalog, llm=FakeLLM(configured=False))
        results = await service.search_titles("batman")
        self.assertEqual([r["id"] for r in results], [268, 2098])
        self.assertTrue(all(r["media_type"] in ("movie", "tv") for r in results))
        self.assertEqual(results[1]["title"], "Batman: The Animated Series")
        self.assertEqual(results[1]["release_date"], "1992-09-05")
        self.assertEqual(catalog.calls[0][1]["include_adult"], False)

    async def test_details(self):
        service = RecommendationService(catalog=FakeCatalog(), llm=FakeLLM(configured=False))
        self.assertEqual(await service.get_title_details(1396, "tv"), {"id": 1396, "media_type": "tv"})

if __name__ == "__main__":
    unittest.main()
