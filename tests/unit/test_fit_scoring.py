import unittest
from app.services.candidates import Candidate
from app.services.fit_scoring import (
    apply_heuristic_scores,
    initial_vibe,
    rank_candidates,
    score_candidate,
)

def make_candidate(idx, strategy="discover", genres=None, vote=7.0, popularity=100.0):
    return Candidate(id=idx, title=f"Movie {idx}", genre_ids=genres or [], strategy=strategy, vote_average=vote, popularity=popularity)

class TestHeuristicScore(unittest.TestCase):
    def test_seed_with_half_genre_overlap(self):
        c = make_candidate(1, strategy="seed", genres=[28, 12], vote=8.0, popularity=500.0)
        # 15 (half of 30) + 40 (seed) + 12.5 (8*1.5 + 0.5)
        self.assertAlmostEqual(score_candidate(c, [28, 878]), 67.5)

    def test_underrated_bonus_and_trending_none(self):
        under = make_candidate(1, strategy="underrated", vote=0, popularity=0)
        trend = make_candidate(2, strategy="trending", vote=0, popularity=0)
        self.assertEqual(score_candidate(under, []), 20.0)
        self.assertEqual(score_candidate(trend, []), 0.0)

    def test_quality_is_capped(self):
        c = make_candidate(1, vote=9.0, popularity=50000.0)
        self.assertEqual(score_candidate(c, []), 20.0)

    def test_no_requested_genres_contributes_nothing(self):
        c = make_candidate(1, genres=[28], vote=0, popularity=0)
        self.assertEqual(score_candidate(c, []), 0.0)

    def test_duplicate_requested_genres_count_twice(self):
        c = make_candidate(1, genres=[28], vote=0, popularity=0)
        # 2 of 3 requested entries match
        self.assertAlmostEqual(score_candidate(c, [28, 28, 878]), 20.0)

    def test_deterministic(self):
        c = make_candidate(1, strategy="seed", genres=[18], vote=6.3, popularity=321.0)
        self.assertEqual(score_candidate(c, [18, 35]), score_candidate(c, [18, 35]))

    def test_initial_vibe_bounds(self):
        for tenth in range(0, 1200):
            vibe = initial_vibe(tenth / 10)
            self.assertGreaterEqual(vibe, 40)
            self.assertLessEqual(vibe, 98)

    def test_initial_vibe_rounds_half_up(self):
        self.assertEqual(initial_vibe(32.5), 73)
        self.assertEqual(initial_vibe(67.5), 98)

    def test_apply_keeps_order(self):
        cands = [make_candidate(1, vote=1), make_candidate(2, strategy="seed")]
        apply_heuristic_scores(cands, [])
        self.assertEqual([c.id for c in cands], [1, 2])
        self.assertGreater(cands[1].match_score, cands[0].match_score)


class TestRankCandidates(unittest.TestCase):
    def test_sorted_and_truncated(self):
        cands = [make_candidate(i, vote=(i % 10), popularity=i * 10.0, strategy="underrated" if i % 4 == 0 else "discover") for i in range(40)]
        ranked = rank_candidates(cands, [28], limit=15)
        self.assertEqual(len(ranked), 15)
        scores = [c.match_score for c in ranked]
        self.assertEqual(scores, sorted(scores, reverse=True))

    def test_ties_keep_merge_order(self):
        cands = [make_candidate(i, vote=5.0, popularity=0.0) for i in range(5)]
        ranked = rank_candidates(cands, [])
        self.assertEqual([c.id for c in ranked], [0, 1, 2, 3, 4])

if __name__ == "__main__":
    unittest.main()
