"""Tests for the pattern recognition engine and built-in matchers."""

import logging

import pytest

from codeviz.core.exceptions import ConfigurationError
from codeviz.core.models import ConnectionKind, PatternComplexity
from codeviz.core.recognition import PatternMatch, PatternMatcher, RecognitionEngine, optional_matchers
from codeviz.core.recognition.matchers import react_component
from codeviz.languages import EcmaScriptAnalyzer, SyntaxTree

COUNTER = """
function Counter() {
  const [count, setCount] = useState(0);
  return <button onClick={() => setCount(count + 1)}>{count}</button>;
}
"""

FETCH_CHAIN = """
fetch('/api/users', { method: 'POST', body: JSON.stringify(user) })
  .then(response => response.json())
  .catch(error => console.error(error));
"""

AWAIT_AXIOS = """
async function load(id) {
  try {
    const res = await axios.get(`/api/items/${id}`);
    return res.data;
  } catch (err) {
    showError(err);
  }
}
"""

DATABASE = """
async function getUsers(db) {
  const sql = 'SELECT * FROM users WHERE active = ?';
  try {
    const rows = await db.query(sql, [true]);
    return rows;
  } catch (err) {
    console.error(err);
  }
}
"""

TRY_CATCH = """
try {
  const data = JSON.parse(input);
  process(data);
} catch (error) {
  console.log(error.message);
  retryLater();
} finally {
  cleanup();
}
"""

MIXED = COUNTER + FETCH_CHAIN + DATABASE


@pytest.fixture(scope="module")
def analyzer() -> EcmaScriptAnalyzer:
    """Create a shared analyzer."""
    return EcmaScriptAnalyzer()


@pytest.fixture
def parse(analyzer: EcmaScriptAnalyzer):
    """Parse source text into a syntax tree, failing on syntax errors."""

    def _parse(code: str) -> SyntaxTree:
        result = analyzer.parse(code)
        assert result.ok, result.errors
        return result.tree

    return _parse


@pytest.fixture
def engine() -> RecognitionEngine:
    """Create an engine with the default catalog."""
    return RecognitionEngine()


def _boom(node, context):
    raise RuntimeError("matcher exploded")


class TestEngineRegistry:
    """Tests for matcher registration and the threshold."""

    def test_default_catalog(self, engine: RecognitionEngine) -> None:
        assert engine.registered_pattern_types() == [
            "state-action",
            "api-call",
            "database",
            "error-handling",
        ]

    def test_register_replaces_same_type(self, engine: RecognitionEngine) -> None:
        replacement = PatternMatcher("api-call", lambda node, ctx: [], lambda m: 1.0)
        engine.register_matcher(replacement)

        assert engine.registered_pattern_types().count("api-call") == 1

    def test_unregister(self, engine: RecognitionEngine) -> None:
        assert engine.unregister_matcher("database")
        assert not engine.unregister_matcher("database")
        assert "database" not in engine.registered_pattern_types()

    @pytest.mark.parametrize("threshold", [-0.1, 1.5])
    def test_threshold_out_of_range(self, engine: RecognitionEngine, threshold: float) -> None:
        with pytest.raises(ConfigurationError):
            engine.set_confidence_threshold(threshold)

    def test_constructor_rejects_bad_threshold(self) -> None:
        with pytest.raises(ConfigurationError):
            RecognitionEngine(confidence_threshold=2)


class TestRecognizePatterns:
    """Tests for the traversal and conversion."""

    def test_no_idiom(self, engine: RecognitionEngine, parse) -> None:
        assert engine.recognize_patterns(parse("const x = 1;")) == []

    def test_empty_tree(self, engine: RecognitionEngine) -> None:
        assert engine.recognize_patterns(SyntaxTree.empty()) == []

    def test_state_action(self, engine: RecognitionEngine, parse) -> None:
        """A state value updated from a click handler is one state-action pattern."""
        patterns = engine.recognize_patterns(parse(COUNTER))

        assert len(patterns) == 1
        pattern = patterns[0]
        assert pattern.type == "state-action"
        assert pattern.id == "pattern-state-action-0"
        assert pattern.confidence > 0.6
        assert "count" in pattern.variables
        assert "setCount" in pattern.variables

    def test_state_action_graph(self, engine: RecognitionEngine, parse) -> None:
        pattern = engine.recognize_patterns(parse(COUNTER))[0]

        types = [node.type for node in pattern.nodes]
        assert types == ["component", "counter", "button"]
        assert pattern.nodes[0].label == "Counter"
        assert pattern.root_node is pattern.nodes[0]
        labels = {c.label: c.kind for c in pattern.connections}
        assert labels["holds state"] is ConnectionKind.CONTROL_FLOW
        assert labels["click updates"] is ConnectionKind.EVENT

    def test_ids_are_sequential_per_type(self, engine: RecognitionEngine, parse) -> None:
        code = "fetch('/a').then(r => r.json());\nfetch('/b').then(r => r.json());"
        patterns = engine.recognize_patterns(parse(code))

        assert [p.id for p in patterns] == ["pattern-api-call-0", "pattern-api-call-1"]

    def test_context_excerpt(self, engine: RecognitionEngine, parse) -> None:
        pattern = engine.recognize_patterns(parse(FETCH_CHAIN))[0]

        assert "fetch('/api/users'" in pattern.context

    def test_connections_reference_own_nodes(self, engine: RecognitionEngine, parse) -> None:
        for pattern in engine.recognize_patterns(parse(MIXED)):
            ids = {node.id for node in pattern.nodes}
            for connection in pattern.connections:
                assert connection.source_id in ids
                assert connection.target_id in ids

    def test_results_follow_source_order(self, engine: RecognitionEngine, parse) -> None:
        patterns = engine.recognize_patterns(parse(MIXED))
        starts = [p.location.start for p in patterns]

        assert starts == sorted(starts)

    def test_deeply_nested_expression(self, engine: RecognitionEngine, parse) -> None:
        code = (
            "const s = " + " + ".join(['"a"'] * 1500) + ";\n"
            "fetch('/api/x').then(r => r.json()).catch(e => e);\n"
        )

        patterns = engine.recognize_patterns(parse(code))

        assert [p.type for p in patterns] == ["api-call"]
        assert patterns[0].metadata["endpoint"] == "/api/x"
        assert patterns[0].location.start_line == 2


class TestConfidenceFiltering:
    """Tests for threshold behavior."""

    def test_below_threshold_is_dropped(self, parse) -> None:
        low = PatternMatcher(
            "debugger",
            lambda node, ctx: (
                [PatternMatch(type="debugger", root=node, involved=[node])]
                if node.type == "debugger_statement"
                else []
            ),
            lambda m: 0.59,
        )
        engine = RecognitionEngine(matchers=[low], confidence_threshold=0.6)

        assert engine.recognize_patterns(parse("debugger;")) == []
        engine.set_confidence_threshold(0.59)
        assert len(engine.recognize_patterns(parse("debugger;"))) == 1

    def test_raising_threshold_only_shrinks(self, parse) -> None:
        tree = parse(MIXED + TRY_CATCH)
        previous = None
        for threshold in (0.0, 0.5, 0.8, 0.95, 1.0):
            engine = RecognitionEngine(confidence_threshold=threshold)
            found = {(p.type, p.location.start) for p in engine.recognize_patterns(tree)}
            if previous is not None:
                assert found <= previous
            previous = found


class TestFaultyMatchers:
    """Tests for matcher failures."""

    def test_throwing_matcher_does_not_abort(
        self, engine: RecognitionEngine, parse, caplog: pytest.LogCaptureFixture
    ) -> None:
        engine.register_matcher(PatternMatcher("boom", _boom, lambda m: 1.0))

        with caplog.at_level(logging.WARNING, logger="codeviz.core.recognition.engine"):
            patterns = engine.recognize_patterns(parse(COUNTER))

        assert [p.type for p in patterns] == ["state-action"]
        assert any("boom" in record.getMessage() for record in caplog.records)

    def test_unconvertible_match_is_dropped(self, parse) -> None:
        """A match whose root is not among its nodes is skipped, not fatal."""

        def rootless(node, ctx):
            if node.type != "program":
                return []
            return [PatternMatch(type="broken", root=node, involved=list(node.children))]

        engine = RecognitionEngine()
        engine.register_matcher(PatternMatcher("broken", rootless, lambda m: 1.0))
        patterns = engine.recognize_patterns(parse(COUNTER))

        assert [p.type for p in patterns] == ["state-action"]


class TestRemoteCallMatcher:
    """Tests for fetch/axios recognition."""

    def test_fetch_chain(self, engine: RecognitionEngine, parse) -> None:
        patterns = engine.recognize_patterns(parse(FETCH_CHAIN))

        assert len(patterns) == 1
        pattern = patterns[0]
        assert pattern.type == "api-call"
        assert pattern.metadata["endpoint"] == "/api/users"
        assert pattern.metadata["http_method"] == "POST"
        assert pattern.metadata["has_error_handling"]

    def test_fetch_chain_graph(self, engine: RecognitionEngine, parse) -> None:
        pattern = engine.recognize_patterns(parse(FETCH_CHAIN))[0]

        assert pattern.nodes[0].type == "user"
        kinds = {c.label: c.kind for c in pattern.connections}
        assert kinds["POST request"] is ConnectionKind.EVENT
        assert kinds["success response"] is ConnectionKind.SUCCESS_PATH
        assert kinds["error response"] is ConnectionKind.ERROR_PATH

    def test_awaited_axios_in_try(self, engine: RecognitionEngine, parse) -> None:
        patterns = engine.recognize_patterns(parse(AWAIT_AXIOS))
        api = [p for p in patterns if p.type == "api-call"]

        assert len(api) == 1
        meta = api[0].metadata
        assert meta["api_type"] == "axios"
        assert meta["http_method"] == "GET"
        assert meta["endpoint"] == "/api/items/{id}"
        assert "try-catch-error" in meta["error_handlers"]
        assert "id" in api[0].variables


class TestPersistenceMatcher:
    """Tests for database recognition."""

    def test_query_through_variable(self, engine: RecognitionEngine, parse) -> None:
        patterns = engine.recognize_patterns(parse(DATABASE))
        database = [p for p in patterns if p.type == "database"]

        assert len(database) == 1
        meta = database[0].metadata
        assert meta["operation_type"] == "select"
        assert meta["tables"] == ["users"]
        assert meta["has_error_handling"]
        assert database[0].confidence > 0.6

    def test_database_graph(self, engine: RecognitionEngine, parse) -> None:
        pattern = [p for p in engine.recognize_patterns(parse(DATABASE)) if p.type == "database"][0]

        assert pattern.root_node.type == "database"
        labels = {c.label for c in pattern.connections}
        assert "select" in labels
        assert "query failed" in labels

    def test_orm_call(self, engine: RecognitionEngine, parse) -> None:
        patterns = engine.recognize_patterns(parse("const users = await User.findAll();"))

        assert [p.type for p in patterns] == ["database"]
        assert patterns[0].metadata["db_library"] == "sequelize"

    def test_builtin_globals_are_not_models(self, engine: RecognitionEngine, parse) -> None:
        assert engine.recognize_patterns(parse("const o = Object.create(null);")) == []


class TestErrorHandlingMatcher:
    """Tests for try/catch recognition."""

    def test_try_catch_finally(self, engine: RecognitionEngine, parse) -> None:
        patterns = engine.recognize_patterns(parse(TRY_CATCH))

        assert [p.type for p in patterns] == ["error-handling"]
        meta = patterns[0].metadata
        assert meta["has_finally"]
        assert meta["has_error_recovery"]
        assert "error-message" in meta["error_types"]
        assert meta["cleanup_actions"] == ["cleanup"]

    def test_try_catch_graph(self, engine: RecognitionEngine, parse) -> None:
        pattern = engine.recognize_patterns(parse(TRY_CATCH))[0]

        labels = [node.label for node in pattern.nodes]
        assert labels == ["try", "JSON.parse()", "catch (error)", "finally"]
        kinds = {c.label: c.kind for c in pattern.connections}
        assert kinds["on error"] is ConnectionKind.ERROR_PATH
        assert kinds["always executes"] is ConnectionKind.CONTROL_FLOW

    def test_error_boundary(self, engine: RecognitionEngine, parse) -> None:
        code = """
class Boundary extends React.Component {
  componentDidCatch(error, info) { report(error); }
  render() { return this.props.children; }
}
"""
        patterns = engine.recognize_patterns(parse(code))

        assert [p.type for p in patterns] == ["error-handling"]
        assert patterns[0].metadata["is_error_boundary"]

    def test_complexity_classification(self, engine: RecognitionEngine, parse) -> None:
        pattern = engine.recognize_patterns(parse(TRY_CATCH))[0]

        assert pattern.complexity is PatternComplexity.SIMPLE


PROFILE = """
function Profile({ user, onLogout }) {
  const [open, setOpen] = useState(false);
  useEffect(() => { document.title = user.name; }, [user]);
  return (
    <div>
      <Avatar src={user.avatar} />
      <button onClick={() => setOpen(!open)}>Menu</button>
    </div>
  );
}
"""

CLOCK = """
class Clock extends React.Component {
  constructor(props) {
    super(props);
    this.state = { date: new Date(), ticks: 0 };
  }

  componentDidMount() {
    this.timer = setInterval(() => this.tick(), 1000);
  }

  componentWillUnmount() {
    clearInterval(this.timer);
  }

  render() {
    return <Face date={this.state.date} zone={this.props.zone} />;
  }
}
"""


@pytest.fixture
def component_engine() -> RecognitionEngine:
    """Create an engine running only the component matcher, keeping every match."""
    return RecognitionEngine(matchers=[react_component.MATCHER], confidence_threshold=0.0)


class TestReactComponentMatcher:
    """Tests for the optional component matcher."""

    def test_not_registered_by_default(self, engine: RecognitionEngine) -> None:
        assert "react-component" not in engine.registered_pattern_types()
        assert [m.pattern_type for m in optional_matchers()] == ["react-component"]

    def test_register_on_default_engine(self, engine: RecognitionEngine, parse) -> None:
        engine.register_matcher(react_component.MATCHER)

        patterns = engine.recognize_patterns(parse(PROFILE))

        assert "react-component" in [p.type for p in patterns]

    def test_function_component(self, component_engine: RecognitionEngine, parse) -> None:
        patterns = component_engine.recognize_patterns(parse(PROFILE))

        assert len(patterns) == 1
        pattern = patterns[0]
        meta = pattern.metadata
        assert meta["component_name"] == "Profile"
        assert meta["component_kind"] == "function"
        assert meta["props"] == ["user", "onLogout"]
        assert meta["state_variables"] == ["open"]
        assert meta["effects"] == ["useEffect"]
        assert meta["child_components"] == ["Avatar"]
        assert meta["uses_hooks"]
        assert meta["handles_rerendering"]
        assert pattern.confidence == 1.0

    def test_function_component_graph(self, component_engine: RecognitionEngine, parse) -> None:
        pattern = component_engine.recognize_patterns(parse(PROFILE))[0]

        assert [node.type for node in pattern.nodes] == ["component", "variable", "function", "component"]
        assert pattern.nodes[0].label == "Profile"
        assert pattern.nodes[3].label == "<Avatar>"
        labels = [c.label for c in pattern.connections]
        assert labels == ["holds state", "runs", "renders"]
        assert all(c.source_id == pattern.nodes[0].id for c in pattern.connections)

    def test_arrow_component_with_props_parameter(self, component_engine: RecognitionEngine, parse) -> None:
        code = "const Title = props => <h1>{props.text}</h1>;\n"

        patterns = component_engine.recognize_patterns(parse(code))

        assert [p.metadata["props"] for p in patterns] == [["props"]]
        assert not patterns[0].metadata["uses_hooks"]
        assert patterns[0].confidence == pytest.approx(0.5)

    def test_class_component(self, component_engine: RecognitionEngine, parse) -> None:
        patterns = component_engine.recognize_patterns(parse(CLOCK))

        assert len(patterns) == 1
        pattern = patterns[0]
        meta = pattern.metadata
        assert meta["component_name"] == "Clock"
        assert meta["component_kind"] == "class"
        assert meta["has_lifecycle_methods"]
        assert meta["effects"] == ["componentDidMount", "componentWillUnmount"]
        assert meta["state_variables"] == ["date", "ticks"]
        assert meta["props"] == ["zone"]
        assert meta["child_components"] == ["Face"]
        assert pattern.functions == ["componentDidMount", "componentWillUnmount"]
        assert pattern.confidence == pytest.approx(0.8)

    def test_class_state_field(self, component_engine: RecognitionEngine, parse) -> None:
        code = """
class Toggle extends Component {
  state = { on: false };
  render() { return <span>{String(this.state.on)}</span>; }
}
"""
        pattern = component_engine.recognize_patterns(parse(code))[0]

        assert pattern.metadata["state_variables"] == ["on"]
        assert not pattern.metadata["has_lifecycle_methods"]

    def test_plain_class_is_ignored(self, component_engine: RecognitionEngine, parse) -> None:
        code = "class Store extends EventEmitter {\n  componentDidMount() {}\n}\n"

        assert component_engine.recognize_patterns(parse(code)) == []

    def test_function_without_jsx_is_ignored(self, component_engine: RecognitionEngine, parse) -> None:
        code = "function useThing() {\n  const [v, setV] = useState(0);\n  return v;\n}\n"

        assert component_engine.recognize_patterns(parse(code)) == []
