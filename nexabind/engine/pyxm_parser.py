"""
NexaBind PYXM Parser
====================

Parses .pyxm templates into a mutable node tree that the reactive
rewriter transforms in place.

PYXM Format:
    PYXM is HTML with template statements and bound expressions:

    - {{ expression }}: Output expression result
    - {% let name = expression %}: Declare a reactive variable
    - {% if condition %}...{% elif other %}...{% else %}...{% endif %}
    - {% for item, index in items %}...{% endfor %}
    - {% component name(a, b) %}...{% endcomponent %}: Define a component
    - {% call name(x, 'literal') %}: Invoke a component
    - {% include "other.pyxm" %}: Splice another template
    - {% raw %}...{% endraw %}: Literal markup
    - {# comment #}: Template comment
    - :attr="expression": Attribute bound to an expression

Example .pyxm:
    {% let count = 0 %}
    <div class="counter">
        <h1>Count: {{ count }}</h1>
        {% if count > 10 %}
            <p class="warning">Count is high!</p>
        {% endif %}
        <a :href="'/items/' + count">Details</a>
    </div>

Expressions are opaque JavaScript; the parser never looks inside them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from nexabind.engine.errors import TemplateSyntaxError


class TokenType(Enum):
    """Token types for PYXM lexer."""
    # Basic tokens
    TEXT = auto()

    # HTML tokens
    TAG_OPEN = auto()          # <
    TAG_CLOSE = auto()         # >
    TAG_SELF_CLOSE = auto()    # />
    TAG_END_OPEN = auto()      # </
    TAG_NAME = auto()          # div, span, etc.
    ATTR_NAME = auto()         # class, id, etc.
    ATTR_VALUE = auto()        # "value"
    ATTR_EQUALS = auto()       # =
    ATTR_BIND = auto()         # :href, :class

    # Expression tokens
    EXPR_OPEN = auto()         # {{
    EXPR_CLOSE = auto()        # }}
    EXPR_CONTENT = auto()

    # Statement tokens
    STMT_OPEN = auto()         # {%
    STMT_CLOSE = auto()        # %}
    STMT_CONTENT = auto()
    RAW_CONTENT = auto()       # body of {% raw %}

    # Comment tokens
    COMMENT_OPEN = auto()      # {#
    COMMENT_CLOSE = auto()     # #}
    COMMENT_CONTENT = auto()

    EOF = auto()


@dataclass
class Token:
    """Represents a lexer token."""
    type: TokenType
    value: str
    line: int
    column: int

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"


class NodeType(Enum):
    """Node types produced by the parser."""
    ROOT = auto()
    ELEMENT = auto()
    TEXT = auto()
    COMMENT = auto()
    RAW = auto()
    CODE = auto()         # {{ expr }} and {% let name = expr %}
    IF = auto()
    FOR = auto()
    COMPONENT = auto()    # component definition
    CALL = auto()         # component invocation
    INCLUDE = auto()


@dataclass
class PyxmNode:
    """
    Node of a PYXM template tree.

    One class covers every variant; which fields are meaningful depends
    on ``type``:

    - ELEMENT: tag, attributes (static), bindings (expressions), children
    - TEXT / COMMENT / RAW: content
    - CODE: content ("expr" or "let name = expr")
    - IF: condition, children (consequent), alternate (None without else)
    - FOR: source, params (binding names), children (body)
    - COMPONENT: tag (name), params, children (body)
    - CALL: tag (name), args
    - INCLUDE: content (template name)

    Trees are mutated in place by the rewriter; a node never has two parents.
    """
    type: NodeType
    tag: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)
    bindings: Dict[str, str] = field(default_factory=dict)  # :attr bindings
    children: List["PyxmNode"] = field(default_factory=list)
    alternate: Optional[List["PyxmNode"]] = None
    content: Optional[str] = None
    condition: Optional[str] = None
    source: Optional[str] = None
    params: List[str] = field(default_factory=list)
    args: str = ""
    line: int = 0
    column: int = 0
    is_self_closing: bool = False

    def blocks(self) -> Iterator[List["PyxmNode"]]:
        """Yield every child sequence owned by this node."""
        yield self.children
        if self.alternate is not None:
            yield self.alternate

    def walk(self) -> Iterator["PyxmNode"]:
        """Depth-first iteration over this node and its descendants."""
        yield self
        for block in self.blocks():
            for child in block:
                yield from child.walk()


@dataclass
class PyxmAST:
    """Parsed template: a ROOT node plus the template name."""
    root: PyxmNode
    name: str = "template"

    @property
    def nodes(self) -> List[PyxmNode]:
        """Top-level node sequence."""
        return self.root.children


_IDENTIFIER = r"[A-Za-z_$][\w$]*"

# HTML elements that never have children or an end tag
VOID_ELEMENTS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "param", "source", "track", "wbr",
})


class PyxmLexer:
    """
    Tokenizer for PYXM templates.

    Converts raw PYXM source into a stream of tokens for parsing.
    """

    # Regular expressions for token matching
    PATTERNS = {
        "expr_open": re.compile(r"\{\{"),
        "stmt_open": re.compile(r"\{%"),
        "comment_open": re.compile(r"\{#"),
        "tag_end_open": re.compile(r"</"),
        "tag_self_close": re.compile(r"/>"),
        "tag_open": re.compile(r"<(?=[a-zA-Z_])"),
        "tag_close": re.compile(r">"),
        "whitespace": re.compile(r"\s+"),
        "tag_name": re.compile(r"[a-zA-Z_][a-zA-Z0-9_.:-]*"),
        "attr_equals": re.compile(r"="),
        "attr_value": re.compile(r"'[^']*'|\"[^\"]*\""),
        "attr_bind": re.compile(r":([a-zA-Z][a-zA-Z0-9_-]*)"),
        "raw_start": re.compile(r"raw\s*$"),
        "raw_end": re.compile(r"\{%\s*endraw\s*%\}"),
    }

    def __init__(self, source: str, filename: Optional[str] = None) -> None:
        self.source = source
        self.filename = filename
        self.pos = 0
        self.line = 1
        self.column = 1
        self.tokens: List[Token] = []

    def tokenize(self) -> List[Token]:
        """Tokenize the entire source."""
        while self.pos < len(self.source):
            self._next_token()
        self.tokens.append(Token(TokenType.EOF, "", self.line, self.column))
        return self.tokens

    def _next_token(self) -> None:
        """Extract next token from source."""
        # Check for special sequences first
        if self._match_pattern("expr_open"):
            self._tokenize_delimited(
                TokenType.EXPR_OPEN, TokenType.EXPR_CONTENT, TokenType.EXPR_CLOSE, "}}"
            )
        elif self._match_pattern("stmt_open"):
            self._tokenize_statement()
        elif self._match_pattern("comment_open"):
            self._tokenize_delimited(
                TokenType.COMMENT_OPEN, TokenType.COMMENT_CONTENT, TokenType.COMMENT_CLOSE, "#}"
            )
        elif self._match_pattern("tag_end_open"):
            self._add_token(TokenType.TAG_END_OPEN, "</")
            self._advance(2)
            self._tokenize_tag()
        elif self._match_pattern("tag_open"):
            self._add_token(TokenType.TAG_OPEN, "<")
            self._advance()
            self._tokenize_tag()
        else:
            self._tokenize_text()

    def _match_pattern(self, name: str) -> bool:
        """Check if pattern matches at current position."""
        pattern = self.PATTERNS[name]
        match = pattern.match(self.source, self.pos)
        return match is not None

    def _consume_pattern(self, name: str) -> Optional[str]:
        """Consume pattern if it matches, return matched text."""
        pattern = self.PATTERNS[name]
        match = pattern.match(self.source, self.pos)
        if match:
            text = match.group()
            self._advance(len(text))
            return text
        return None

    def _advance(self, count: int = 1) -> None:
        """Advance position in source."""
        for _ in range(count):
            if self.pos < len(self.source):
                if self.source[self.pos] == "\n":
                    self.line += 1
                    self.column = 1
                else:
                    self.column += 1
                self.pos += 1

    def _add_token(self, type: TokenType, value: str) -> None:
        """Add token to list."""
        self.tokens.append(Token(type, value, self.line, self.column))

    def _error(self, message: str) -> TemplateSyntaxError:
        return TemplateSyntaxError(message, self.line, self.column, self.filename)

    def _tokenize_delimited(
        self,
        open_type: TokenType,
        content_type: TokenType,
        close_type: TokenType,
        closer: str,
    ) -> None:
        """Tokenize {{ expression }} and {# comment #}."""
        opener = self.source[self.pos:self.pos + 2]
        self._add_token(open_type, opener)
        self._advance(2)

        end = self.source.find(closer, self.pos)
        if end == -1:
            raise self._error(f"Unclosed '{opener}'")

        content = self.source[self.pos:end]
        if content_type == TokenType.EXPR_CONTENT:
            content = content.strip()
        self._add_token(content_type, content)
        self._advance(end - self.pos)

        self._add_token(close_type, closer)
        self._advance(2)

    def _tokenize_statement(self) -> None:
        """Tokenize {% statement %}; a raw statement captures its body verbatim."""
        self._add_token(TokenType.STMT_OPEN, "{%")
        self._advance(2)

        end = self.source.find("%}", self.pos)
        if end == -1:
            raise self._error("Unclosed '{%'")

        content = self.source[self.pos:end].strip()
        self._add_token(TokenType.STMT_CONTENT, content)
        self._advance(end - self.pos)

        self._add_token(TokenType.STMT_CLOSE, "%}")
        self._advance(2)

        if self.PATTERNS["raw_start"].match(content):
            match = self.PATTERNS["raw_end"].search(self.source, self.pos)
            if match is None:
                raise self._error("Unclosed '{% raw %}'")
            self._add_token(TokenType.RAW_CONTENT, self.source[self.pos:match.start()])
            self._advance(match.start() - self.pos)

    def _tokenize_tag(self) -> None:
        """Tokenize a start or end tag up to and including its closing bracket."""
        self._consume_pattern("whitespace")
        name = self._consume_pattern("tag_name")
        if name:
            self._add_token(TokenType.TAG_NAME, name)

        while self.pos < len(self.source):
            self._consume_pattern("whitespace")

            if self._match_pattern("tag_self_close"):
                self._add_token(TokenType.TAG_SELF_CLOSE, "/>")
                self._advance(2)
                return
            if self._match_pattern("tag_close"):
                self._add_token(TokenType.TAG_CLOSE, ">")
                self._advance()
                return

            bind = self.PATTERNS["attr_bind"].match(self.source, self.pos)
            if bind:
                self._add_token(TokenType.ATTR_BIND, bind.group(1))
                self._advance(len(bind.group()))
            else:
                attr_name = self._consume_pattern("tag_name")
                if not attr_name:
                    raise self._error(f"Unexpected character {self.source[self.pos]!r} in tag")
                self._add_token(TokenType.ATTR_NAME, attr_name)

            self._consume_pattern("whitespace")
            if self._match_pattern("attr_equals"):
                self._add_token(TokenType.ATTR_EQUALS, "=")
                self._advance()
                self._tokenize_attr_value()

        raise self._error("Unclosed tag")

    def _tokenize_attr_value(self) -> None:
        self._consume_pattern("whitespace")
        value = self._consume_pattern("attr_value")
        if value is None:
            raise self._error("Attribute value must be quoted")
        self._add_token(TokenType.ATTR_VALUE, value[1:-1])

    def _tokenize_text(self) -> None:
        """Tokenize plain text content."""
        start = self.pos
        while self.pos < len(self.source):
            # Stop at special sequences
            if self.source[self.pos:self.pos + 2] in ("{{", "{%", "{#", "</"):
                break
            if self._match_pattern("tag_open"):
                break
            self._advance()

        if self.pos > start:
            text = self.source[start:self.pos]
            self._add_token(TokenType.TEXT, text)


class PyxmParser:
    """
    Parser for PYXM templates.

    Builds a node tree from the token stream. Block statements nest by
    recursion: a block parser collects children until it sees one of its
    closing keywords and leaves that statement for the caller.

    Example:
        ast = PyxmParser("index.pyxm").parse(source)
        for node in ast.nodes:
            ...
    """

    # Statements that end an enclosing block rather than start a node
    BLOCK_ENDS = ("endif", "endfor", "endcomponent", "endraw", "else", "elif")

    LET_PATTERN = re.compile(rf"^let\s+({_IDENTIFIER})\s*=\s*(.+)$", re.DOTALL)
    FOR_PATTERN = re.compile(r"^(.+?)\s+in\s+(.+)$", re.DOTALL)
    SIGNATURE_PATTERN = re.compile(rf"^({_IDENTIFIER})\s*(?:\((.*)\))?$", re.DOTALL)
    IDENTIFIER_PATTERN = re.compile(rf"^{_IDENTIFIER}$")

    def __init__(self, filename: Optional[str] = None) -> None:
        self.filename = filename
        self.tokens: List[Token] = []
        self.pos = 0
        self._statements: Dict[str, Callable[[str, Token], PyxmNode]] = {
            "if": self._parse_if_block,
            "for": self._parse_for_block,
            "component": self._parse_component_block,
            "call": self._parse_call,
            "let": self._parse_let,
            "include": self._parse_include,
            "raw": self._parse_raw_block,
        }

    def parse(self, source: str) -> PyxmAST:
        """
        Parse PYXM source into a node tree.

        Raises:
            TemplateSyntaxError: If the source is malformed
        """
        self.tokens = PyxmLexer(source, self.filename).tokenize()
        self.pos = 0

        root = PyxmNode(type=NodeType.ROOT)
        while not self._is_at_end():
            node = self._parse_node()
            if node is not None:
                root.children.append(node)

        return PyxmAST(root=root, name=self.filename or "template")

    # ------------------------------------------------------------------
    # Token cursor
    # ------------------------------------------------------------------

    def _current(self) -> Token:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return self.tokens[-1]

    def _next(self) -> Token:
        return self.tokens[min(self.pos + 1, len(self.tokens) - 1)]

    def _advance(self) -> Token:
        token = self._current()
        self.pos += 1
        return token

    def _is_at_end(self) -> bool:
        return self._current().type == TokenType.EOF

    def _error(self, message: str, token: Optional[Token] = None) -> TemplateSyntaxError:
        token = token or self._current()
        return TemplateSyntaxError(message, token.line, token.column, self.filename)

    def _expect(self, type: TokenType) -> Token:
        if self._current().type != type:
            raise self._error(f"Expected {type.name}, got {self._current().type.name}")
        return self._advance()

    def _statement_keyword(self) -> Optional[str]:
        """Keyword of the statement at the cursor, None elsewhere."""
        if self._current().type != TokenType.STMT_OPEN or self._next().type != TokenType.STMT_CONTENT:
            return None
        return self._next().value.partition(" ")[0]

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def _parse_node(self) -> Optional[PyxmNode]:
        token = self._current()

        if token.type == TokenType.TEXT:
            return self._parse_text()
        if token.type == TokenType.EXPR_OPEN:
            return self._parse_expression()
        if token.type == TokenType.STMT_OPEN:
            return self._parse_statement()
        if token.type == TokenType.COMMENT_OPEN:
            return self._parse_comment()
        if token.type == TokenType.TAG_OPEN:
            return self._parse_element()
        if token.type == TokenType.TAG_END_OPEN:
            raise self._error(f"Unexpected closing tag </{self._next().value}>")
        raise self._error(f"Unexpected token {token.type.name}")

    def _parse_text(self) -> Optional[PyxmNode]:
        """Text node; whitespace runs that contain a newline are indentation and dropped."""
        token = self._advance()
        if not token.value.strip() and "\n" in token.value:
            return None
        return PyxmNode(type=NodeType.TEXT, content=token.value, line=token.line, column=token.column)

    def _parse_expression(self) -> PyxmNode:
        self._expect(TokenType.EXPR_OPEN)
        token = self._expect(TokenType.EXPR_CONTENT)
        self._expect(TokenType.EXPR_CLOSE)

        if not token.value:
            raise self._error("Empty expression", token)
        return PyxmNode(type=NodeType.CODE, content=token.value, line=token.line, column=token.column)

    def _parse_comment(self) -> PyxmNode:
        self._expect(TokenType.COMMENT_OPEN)
        token = self._expect(TokenType.COMMENT_CONTENT)
        self._expect(TokenType.COMMENT_CLOSE)
        return PyxmNode(type=NodeType.COMMENT, content=token.value, line=token.line)

    def _parse_statement(self) -> PyxmNode:
        self._expect(TokenType.STMT_OPEN)
        token = self._expect(TokenType.STMT_CONTENT)
        self._expect(TokenType.STMT_CLOSE)

        keyword, _, rest = token.value.partition(" ")
        handler = self._statements.get(keyword)
        if handler is not None:
            # let keeps its whole text: the rewriter re-parses the declaration
            return handler(token.value if keyword == "let" else rest.strip(), token)
        if keyword in self.BLOCK_ENDS:
            # Block parsers stop before their own closing statements
            raise self._error(f"Unexpected '{{% {keyword} %}}'", token)
        raise self._error(f"Unknown statement '{keyword}'", token)

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def _parse_if_block(self, condition: str, start: Token) -> PyxmNode:
        """{% if %}; an elif becomes a nested IF that is the whole alternate."""
        if not condition:
            raise self._error("'if' requires a condition", start)

        node = PyxmNode(type=NodeType.IF, condition=condition, line=start.line, column=start.column)
        node.children = self._parse_block(("endif", "else", "elif"), start, "{% if %}")

        keyword = self._statement_keyword()
        if keyword == "elif":
            self._expect(TokenType.STMT_OPEN)
            token = self._expect(TokenType.STMT_CONTENT)
            self._expect(TokenType.STMT_CLOSE)
            node.alternate = [self._parse_if_block(token.value[len("elif"):].strip(), token)]
            return node

        if keyword == "else":
            self._consume_end_tag("else")
            node.alternate = self._parse_block(("endif",), start, "{% if %}")
        self._consume_end_tag("endif")
        return node

    def _parse_for_block(self, iterator: str, start: Token) -> PyxmNode:
        match = self.FOR_PATTERN.match(iterator)
        if not match:
            raise self._error("Expected 'for <names> in <expression>'", start)

        params = [name.strip() for name in match.group(1).split(",")]
        self._check_identifiers(params, start)

        node = PyxmNode(
            type=NodeType.FOR,
            source=match.group(2).strip(),
            params=params,
            line=start.line,
            column=start.column,
        )
        node.children = self._parse_block(("endfor",), start, "{% for %}")
        self._consume_end_tag("endfor")
        return node

    def _parse_component_block(self, signature: str, start: Token) -> PyxmNode:
        name, raw_params = self._parse_signature(signature, start)
        params = [p.strip() for p in raw_params.split(",") if p.strip()]
        self._check_identifiers(params, start)

        node = PyxmNode(
            type=NodeType.COMPONENT,
            tag=name,
            params=params,
            line=start.line,
            column=start.column,
        )
        node.children = self._parse_block(("endcomponent",), start, "{% component %}")
        self._consume_end_tag("endcomponent")
        return node

    def _parse_call(self, signature: str, start: Token) -> PyxmNode:
        name, args = self._parse_signature(signature, start)
        return PyxmNode(
            type=NodeType.CALL, tag=name, args=args.strip(), line=start.line, column=start.column
        )

    def _parse_let(self, content: str, start: Token) -> PyxmNode:
        if not self.LET_PATTERN.match(content):
            raise self._error("Expected 'let <name> = <expression>'", start)
        return PyxmNode(type=NodeType.CODE, content=content, line=start.line, column=start.column)

    def _parse_include(self, target: str, start: Token) -> PyxmNode:
        if len(target) >= 2 and target[0] == target[-1] and target[0] in "\"'":
            target = target[1:-1]
        if not target:
            raise self._error("'include' requires a template name", start)
        return PyxmNode(type=NodeType.INCLUDE, content=target, line=start.line, column=start.column)

    def _parse_raw_block(self, _: str, start: Token) -> PyxmNode:
        body = self._expect(TokenType.RAW_CONTENT)
        self._consume_end_tag("endraw")
        return PyxmNode(type=NodeType.RAW, content=body.value, line=start.line, column=start.column)

    def _parse_signature(self, signature: str, start: Token) -> Tuple[str, str]:
        """Split "name(args)" into the name and the raw argument text."""
        match = self.SIGNATURE_PATTERN.match(signature)
        if not match:
            raise self._error(f"Invalid component signature '{signature}'", start)
        return match.group(1), match.group(2) or ""

    def _check_identifiers(self, names: List[str], start: Token) -> None:
        for name in names:
            if not self.IDENTIFIER_PATTERN.match(name):
                raise self._error(f"Invalid name '{name}'", start)

    def _parse_block(self, ends: Tuple[str, ...], start: Token, label: str) -> List[PyxmNode]:
        """Children up to, not including, the first statement named in ``ends``."""
        children: List[PyxmNode] = []
        while self._statement_keyword() not in ends:
            if self._is_at_end():
                raise self._error(f"Unclosed '{label}'", start)
            child = self._parse_node()
            if child is not None:
                children.append(child)
        return children

    def _consume_end_tag(self, name: str) -> None:
        self._expect(TokenType.STMT_OPEN)
        token = self._expect(TokenType.STMT_CONTENT)
        if token.value != name:
            raise self._error(f"Expected '{{% {name} %}}', got '{{% {token.value} %}}'", token)
        self._expect(TokenType.STMT_CLOSE)

    # ------------------------------------------------------------------
    # Elements
    # ------------------------------------------------------------------

    def _parse_element(self) -> PyxmNode:
        self._expect(TokenType.TAG_OPEN)
        tag_token = self._expect(TokenType.TAG_NAME)
        tag = tag_token.value.lower()

        node = PyxmNode(type=NodeType.ELEMENT, tag=tag, line=tag_token.line, column=tag_token.column)

        while self._current().type not in (TokenType.TAG_CLOSE, TokenType.TAG_SELF_CLOSE, TokenType.EOF):
            token = self._advance()
            if token.type == TokenType.ATTR_NAME:
                if self._current().type == TokenType.ATTR_EQUALS:
                    self._advance()
                    node.attributes[token.value] = self._expect(TokenType.ATTR_VALUE).value
                else:
                    node.attributes[token.value] = True
            elif token.type == TokenType.ATTR_BIND:
                self._expect(TokenType.ATTR_EQUALS)
                expression = self._expect(TokenType.ATTR_VALUE).value.strip()
                if not expression:
                    raise self._error(f"Empty binding ':{token.value}'", token)
                node.bindings[token.value] = expression
            else:
                raise self._error(f"Unexpected {token.type.name} in <{tag}>", token)

        if self._current().type == TokenType.TAG_SELF_CLOSE:
            self._advance()
            node.is_self_closing = True
            return node

        self._expect(TokenType.TAG_CLOSE)
        if tag in VOID_ELEMENTS:
            node.is_self_closing = True
            return node

        while True:
            if self._is_at_end() or self._statement_keyword() in self.BLOCK_ENDS:
                # EOF or the end of an enclosing block leaves the element open
                raise self._error(f"Unclosed <{tag}>", tag_token)
            if self._current().type == TokenType.TAG_END_OPEN:
                self._advance()
                close = self._expect(TokenType.TAG_NAME)
                self._expect(TokenType.TAG_CLOSE)
                if close.value.lower() != tag:
                    raise self._error(
                        f"Mismatched tags: expected </{tag}>, got </{close.value}>", close
                    )
                return node
            child = self._parse_node()
            if child is not None:
                node.children.append(child)


def parse_template(source: str, name: str = "template") -> PyxmAST:
    """Parse PYXM source; the default ``parse_source`` collaborator."""
    return PyxmParser(filename=name).parse(source)
