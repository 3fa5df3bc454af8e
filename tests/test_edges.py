import json
import unittest

from parallax.graph.edges import (
    SemanticEdge,
    SemanticEdgeExtractor,
    Term,
    build_term_index,
    clamp_strength,
    coerce_relationships,
    normalize_relationships,
    plan_batches,
)

TERMS = [Term("Entropy", slices=(0,)), Term("Information", slices=(1,)), Term("Heat", slices=(0,))]


class FakeLLM:
    def __init__(self, response):
        self.response = response
        self.calls = []

    async def call_json(self, system_prompt, user_prompt):
        self.calls.append(json.loads(user_prompt))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


class TestTerm(unittest.TestCase):
    def test_from_dict_defaults(self):
        term = Term.from_dict({"label": " Entropy ", "type": "bogus", "slices": [2, "x", 1], "centrality": "n/a"})
        self.assertEqual(term.label, "Entropy")
        self.assertEqual(term.type, "unique")
        self.assertEqual(term.slices, (2, 1))
        self.assertEqual(term.centrality, 0.0)
        self.assertEqual(term.discipline, 2)
        self.assertEqual(Term("x").discipline, -1)


class TestNormalizeRelationships(unittest.TestCase):
    def setUp(self):
        self.index = build_term_index(TERMS)

    def test_term_index_is_case_insensitive(self):
        self.assertEqual(self.index, {"entropy": 0, "information": 1, "heat": 2})

    def test_self_loops_and_unknown_terms_dropped(self):
        raw = [
            {"term_a": "Entropy", "term_b": "entropy", "type": "causal"},
            {"term_a": "Entropy", "term_b": "Gravity", "type": "causal"},
            {"term_a": "", "term_b": "Heat"},
            "garbage",
        ]
        self.assertEqual(normalize_relationships(raw, self.index), [])

    def test_unknown_type_becomes_complementary(self):
        edges = normalize_relationships([{"term_a": "entropy", "term_b": "heat", "type": "vibes"}], self.index)
        self.assertEqual(edges[0].type, "complementary")

    def test_strength_and_rationale(self):
        raw = [
            {"term_a": "Entropy", "term_b": "Heat", "type": "Causal", "strength": "2", "rationale": "r" * 300},
            {"term_a": "Entropy", "term_b": "Information", "type": "analogical"},
            {"term_a": "Heat", "term_b": "Information", "type": "causal", "strength": 0},
        ]
        edges = normalize_relationships(raw, self.index)
        self.assertEqual(edges[0].type, "causal")
        self.assertEqual(edges[0].strength, 1.0)
        self.assertEqual(len(edges[0].rationale), 200)
        self.assertEqual(edges[1].strength, 0.5)
        self.assertEqual(edges[2].strength, 0.0)

    def test_dedup_by_unordered_pair_and_type(self):
        raw = [
            {"term_a": "Entropy", "term_b": "Heat", "type": "causal"},
            {"term_a": "heat", "term_b": "ENTROPY", "type": "causal"},
            {"term_a": "Heat", "term_b": "Entropy", "type": "analogical"},
        ]
        edges = normalize_relationships(raw, self.index)
        self.assertEqual([e.type for e in edges], ["causal", "analogical"])

    def test_canonical_labels_when_terms_given(self):
        raw = [{"term_a": "ENTROPY", "term_b": "heat", "type": "causal"}]
        edge = normalize_relationships(raw, self.index, TERMS)[0]
        self.assertEqual((edge.term_a, edge.term_b), ("Entropy", "Heat"))

    def test_clamp_strength(self):
        self.assertEqual(clamp_strength(-3), 0.0)
        self.assertEqual(clamp_strength(None), 0.5)
        self.assertEqual(clamp_strength("nan"), 0.5)
        self.assertEqual(clamp_strength(0.25), 0.25)

    def test_pair_key_ignores_order_and_case(self):
        self.assertEqual(SemanticEdge("A", "b").pair_key, SemanticEdge("B", "a").pair_key)

    def test_coerce_relationships(self):
        self.assertEqual(coerce_relationships({"relationships": [1]}), [1])
        self.assertEqual(coerce_relationships([2]), [2])
        self.assertEqual(coerce_relationships({"relationships": "x"}), [])
        self.assertEqual(coerce_relationships(None), [])


class TestPlanBatches(unittest.TestCase):
    def terms(self, n):
        return [Term(f"t{i}") for i in range(n)]

    def test_single_batch(self):
        self.assertEqual([len(b) for b in plan_batches(self.terms(50))], [50])
        self.assertEqual(plan_batches([]), [])

    def test_two_halves_with_overlap(self):
        batches = plan_batches(self.terms(60))
        self.assertEqual([len(b) for b in batches], [40, 40])
        self.assertEqual(batches[1][0].label, "t20")

    def test_three_thirds_with_overlap(self):
        batches = plan_batches(self.terms(150))
        self.assertEqual([(b[0].label, b[-1].label) for b in batches],
                         [("t0", "t59"), ("t40", "t109"), ("t90", "t149")])


class TestSemanticEdgeExtractor(unittest.IsolatedAsyncioTestCase):
    async def test_extracts_and_normalizes(self):
        response = '```json\n{"relationships": [' \
                   '{"term_a": "entropy", "term_b": "Information", "type": "analogical", "strength": 0.9},' \
                   '{"term_a": "Heat", "term_b": "Heat", "type": "causal"}]}\n```'
        llm = FakeLLM(response)
        result = await SemanticEdgeExtractor(llm).extract("thermodynamics", TERMS, ["Physics", "CS"])
        self.assertEqual(result.batch_count, 1)
        self.assertEqual(result.term_count, 3)
        self.assertEqual([e.to_dict()["term_a"] for e in result.relationships], ["Entropy"])
        self.assertEqual(llm.calls[0]["topic"], "thermodynamics")
        self.assertEqual(llm.calls[0]["disciplines"], ["Physics", "CS"])

    async def test_batches_are_merged_and_deduplicated(self):
        llm = FakeLLM({"relationships": [{"term_a": "Entropy", "term_b": "Heat", "type": "causal"}]})
        result = await SemanticEdgeExtractor(llm, threshold=2, overlap=0).extract("t", TERMS)
        self.assertEqual(result.batch_count, 2)
        self.assertEqual(len(llm.calls), 2)
        self.assertEqual(len(result.relationships), 1)

    async def test_failed_batch_yields_no_edges(self):
        llm = FakeLLM(RuntimeError("boom"))
        with self.assertLogs("parallax.graph.edges", level="WARNING"):
            result = await SemanticEdgeExtractor(llm).extract("t", TERMS)
        self.assertEqual(result.relationships, [])

    async def test_unparseable_nesting_yields_no_edges(self):
        llm = FakeLLM("[" * 100000)
        with self.assertLogs("parallax.utils.json_repair", level="WARNING"):
            result = await SemanticEdgeExtractor(llm).extract("t", TERMS)
        self.assertEqual(result.relationships, [])
        self.assertEqual(result.batch_count, 1)

    async def test_no_terms(self):
        self.assertIsNone(await SemanticEdgeExtractor(FakeLLM("{}")).extract("t", []))

    async def test_custom_prompt_builder(self):
        llm = FakeLLM("[]")
        seen = []

        def builder(target, batch, all_terms, disciplines):
            seen.append(len(batch))
            return "system", json.dumps({"target": target})

        result = await SemanticEdgeExtractor(llm, prompt_builder=builder).extract("t", TERMS)
        self.assertEqual(seen, [3])
        self.assertEqual(result.relationships, [])


if __name__ == "__main__":
    unittest.main()
