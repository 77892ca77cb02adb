"""
Node entry point that runs the coding agent inside the sandbox.

The script reads its parameters from ``generation-request.json`` next to it
and reports progress on stdout as marker-prefixed JSON lines, which
``SandboxGenerationSession`` turns back into ``GenerationEvent`` objects.
"""

SCRIPT_NAME = "generate-component.js"
REQUEST_NAME = "generation-request.json"
LOG_NAME = "generation-log.json"

ASSISTANT_MARKER = "__CLAUDE_MESSAGE__"
TOOL_USE_MARKER = "__TOOL_USE__"
TOOL_RESULT_MARKER = "__TOOL_RESULT__"
EXIT_MARKER = "__GENERATION_EXIT__"

_TEMPLATE = r"""const fs = require('fs');
const path = require('path');
const { pathToFileURL } = require('url');

const REQUEST_FILE = '__REQUEST_NAME__';
const LOG_FILE = '__LOG_NAME__';

function emit(marker, payload) {
  process.stdout.write(marker + ' ' + JSON.stringify(payload) + '\n');
}

async function loadSdk() {
  try {
    return require('@anthropic-ai/claude-code');
  } catch (err) {
    // ESM-only releases ignore NODE_PATH, so resolve the entry point by hand
    const base = path.join(process.env.NODE_PATH || '', '@anthropic-ai', 'claude-code');
    const pkg = JSON.parse(fs.readFileSync(path.join(base, 'package.json'), 'utf8'));
    return import(pathToFileURL(path.join(base, pkg.main || 'sdk.mjs')).href);
  }
}

function contentBlocks(message) {
  const content = message.message && message.message.content;
  return Array.isArray(content) ? content : [];
}

async function main() {
  const request = JSON.parse(fs.readFileSync(REQUEST_FILE, 'utf8'));
  const { query } = await loadSdk();
  const messages = [];

  console.log('Starting OpenComponent generation in', process.cwd());

  for await (const message of query({
    prompt: request.prompt,
    abortController: new AbortController(),
    options: {
      maxTurns: request.maxTurns,
      allowedTools: request.allowedTools,
      cwd: process.cwd(),
    },
  })) {
    messages.push(message);
    if (message.type === 'assistant') {
      for (const block of contentBlocks(message)) {
        if (block.type === 'text') {
          emit('__ASSISTANT_MARKER__', { type: 'assistant', content: block.text });
        } else if (block.type === 'tool_use') {
          emit('__TOOL_USE_MARKER__', { type: 'tool_use', name: block.name, input: block.input });
        }
      }
    } else if (message.type === 'user') {
      for (const block of contentBlocks(message)) {
        if (block.type === 'tool_result') {
          emit('__TOOL_RESULT_MARKER__', {
            type: 'tool_result',
            tool_use_id: block.tool_use_id,
            result: block.content,
            is_error: Boolean(block.is_error),
          });
        }
      }
    } else if (message.type === 'result') {
      emit('__TOOL_RESULT_MARKER__', {
        type: 'tool_result',
        result: message.result === undefined ? null : message.result,
        final: true,
        subtype: message.subtype,
        num_turns: message.num_turns,
        is_error: Boolean(message.is_error),
      });
    }
  }

  fs.writeFileSync(LOG_FILE, JSON.stringify(messages, null, 2));
  console.log('Generation finished after', messages.length, 'messages');
}

main().catch((error) => {
  console.error('Generation error:', error && error.stack ? error.stack : error);
  process.exit(1);
});
"""

def _render(template: str) -> str:
    for placeholder, value in (
        ("__REQUEST_NAME__", REQUEST_NAME),
        ("__LOG_NAME__", LOG_NAME),
        ("__ASSISTANT_MARKER__", ASSISTANT_MARKER),
        ("__TOOL_USE_MARKER__", TOOL_USE_MARKER),
        ("__TOOL_RESULT_MARKER__", TOOL_RESULT_MARKER),
    ):
        template = template.replace(placeholder, value)
    return template


GENERATION_SCRIPT = _render(_TEMPLATE)
