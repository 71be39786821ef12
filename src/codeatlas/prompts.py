"""Consolidated inference prompts for codeatlas.

All text sent to the inference service lives here. The service is told
to answer with JSON only, but nothing downstream relies on it obeying.
"""

from codeatlas.constants import (
    EXCERPT_CHARS,
    EXCERPT_LEAD_CHARS,
    EXCERPT_LEAD_FILES,
    TRUNCATION_MARKER,
)
from codeatlas.ingestion.schemas import ChunkRequest, FileUnit

# ── System prompt (chat protocol) ─────────────────────────────────

SYSTEM_PROMPT = (
    "You are a JSON-only response generator. You MUST respond with ONLY "
    "valid JSON. Never use markdown code blocks, never add explanations "
    "before or after. Your response must start with { and end with }. You "
    "MUST include all required fields: modules (array), relationships "
    "(array), summary (string), pattern (object), and layers (array). "
    "Return complete JSON, not partial."
)

# ── Completion protocol hint ──────────────────────────────────────

COMPLETION_HINT = (
    "\n\nCRITICAL: Return ONLY valid JSON. No markdown, no code blocks, "
    "no explanations. Start with { and end with }."
)

# ── Response schema examples ──────────────────────────────────────

_ARCHITECTURE_EXAMPLE = """\
{
    "modules": [
        {
            "name": "ExampleClass",
            "path": "src/example.ts",
            "type": "service",
            "layer": "business",
            "description": "Handles business logic",
            "exports": ["ExampleClass", "helperFunction"],
            "imports": ["./utils", "./models"]
        }
    ],
    "relationships": [
        {
            "from": "src/example.ts",
            "to": "src/utils.ts",
            "type": "imports",
            "strength": "medium",
            "description": "Uses utility functions"
        }
    ],
    "pattern": {
        "name": "Layered",
        "confidence": 0.85,
        "description": "Clear separation between layers"
    },
    "layers": [
        {
            "name": "Business Logic",
            "modules": ["src/example.ts"]
        }
    ],
    "entryPoints": ["src/main.ts", "src/index.ts"],
    "coreComponents": ["src/example.ts"],
    "summary": "A detailed architectural summary..."
}"""

_TEST_SUITE_EXAMPLE = """\
{
    "modules": [
        {
            "name": "Landing Tests",
            "path": "cypress/e2e/01-landing.cy.js",
            "type": "test",
            "layer": "presentation",
            "description": "Tests for landing page functionality"
        }
    ],
    "relationships": [
        {
            "from": "cypress/e2e/01-landing.cy.js",
            "to": "cypress/support/commands.js",
            "type": "uses",
            "strength": "medium",
            "description": "Uses custom Cypress commands"
        }
    ],
    "pattern": {
        "name": "Layered",
        "confidence": 0.8,
        "description": "Test suite organized by feature areas"
    },
    "layers": [
        {"name": "E2E Tests", "modules": ["cypress/e2e/01-landing.cy.js"]},
        {"name": "Support", "modules": ["cypress/support/commands.js"]}
    ],
    "entryPoints": ["cypress.config.js"],
    "coreComponents": ["cypress/support/commands.js"],
    "summary": "An end-to-end test suite for [application name]"
}"""

# ── Task descriptions ─────────────────────────────────────────────

_ARCHITECTURE_TASK = """\
You are an expert software architect analyzing a codebase. Perform a \
comprehensive architectural analysis.

TASK: Analyze the code structure and identify:
1. MODULES: Each file/class with its architectural role
2. RELATIONSHIPS: Dependencies and interactions between modules
3. ARCHITECTURAL PATTERN: The overall architecture (MVC, Layered, \
Microservices, etc.)
4. LAYERS: Logical layers (presentation, business, data, infrastructure)
5. SUMMARY: Comprehensive description of the architecture

For each MODULE, determine:
- name: The file or class name
- path: The file path
- type: 'component' | 'service' | 'utility' | 'model' | 'controller' | \
'view' | 'config' | 'test' | 'other'
- layer: 'presentation' | 'business' | 'data' | 'infrastructure' | 'other'
- description: Brief purpose description
- exports: List of exported functions/classes (if identifiable)
- imports: List of imports from other files (if identifiable)

For each RELATIONSHIP, determine:
- from: Source module path
- to: Target module path
- type: 'imports' | 'extends' | 'implements' | 'uses' | 'calls' | \
'depends' | 'aggregates' | 'composes'
- strength: 'weak' | 'medium' | 'strong' (based on coupling)
- description: Brief description of the relationship

ARCHITECTURAL PATTERN should include:
- name: One of 'MVC' | 'Layered' | 'Microservices' | 'Event-Driven' | \
'Client-Server' | 'Monolithic' | 'Unknown'
- confidence: 0.0 to 1.0
- description: Why this pattern was identified

LAYERS should group modules by architectural layer:
- name: Layer name (e.g., "Presentation", "Business Logic", "Data Access")
- modules: Array of module paths in this layer"""

_TEST_SUITE_TASK = """\
You are analyzing a TEST SUITE codebase. Your task is to identify:
1. MODULES: List each test file and support file
2. RELATIONSHIPS: Show how test files use support files, commands, or \
utilities
3. SUMMARY: Describe what this test suite tests and its structure

For TEST SUITES, modules should represent:
- Test spec files (the actual tests)
- Support files (commands, utilities)
- Configuration files
- Fixtures or helpers"""

_CLOSING_INSTRUCTIONS = """\
CRITICAL INSTRUCTIONS:
1. Return ONLY valid JSON - no markdown, no code blocks, no explanations
2. Start with { and end with }
3. Include ALL required fields: modules, relationships, summary, pattern, layers
4. Make sure the JSON is complete and valid
5. Do not stop mid-response - return the full JSON object

Return the complete JSON now:
"""


def excerpt(file: FileUnit, position: int) -> str:
    """File content cut to the excerpt budget for its position in a chunk."""
    limit = EXCERPT_LEAD_CHARS if position < EXCERPT_LEAD_FILES else EXCERPT_CHARS
    if len(file.content) <= limit:
        return file.content
    return file.content[:limit] + TRUNCATION_MARKER


def _render_files(files: tuple[FileUnit, ...]) -> str:
    blocks = [
        f"=== File: {f.path} ===\n{excerpt(f, idx)}\n"
        for idx, f in enumerate(files)
    ]
    return "\n\n".join(blocks)


def build_chunk_prompt(chunk: ChunkRequest) -> str:
    """Assemble the user prompt for one chunk of files."""
    task = _TEST_SUITE_TASK if chunk.test_suite else _ARCHITECTURE_TASK
    example = _TEST_SUITE_EXAMPLE if chunk.test_suite else _ARCHITECTURE_EXAMPLE
    return (
        f"{task}\n\n"
        "CRITICAL: You MUST return ONLY valid JSON. No markdown, no code "
        "blocks, no explanations before or after. Start directly with { "
        "and end with }.\n\n"
        f"Return ONLY valid JSON in this EXACT format:\n{example}\n\n"
        f"Files to analyze ({len(chunk.files)} of {chunk.corpus_size} files):\n"
        f"{_render_files(chunk.files)}\n\n"
        f"Note: This is chunk {chunk.index} of {chunk.total}. The full "
        f"codebase has {chunk.corpus_size} files total.\n\n"
        f"{_CLOSING_INSTRUCTIONS}"
    )


def build_completion_prompt(chunk: ChunkRequest) -> str:
    """Single-string prompt for the completion protocol."""
    return build_chunk_prompt(chunk) + COMPLETION_HINT
