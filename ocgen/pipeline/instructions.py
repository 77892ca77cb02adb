"""
Instruction text handed to the coding agent.

The agent works inside a directory that ``oc init`` already populated, so the
instruction is mostly about staying inside that skeleton and producing one
embeddable component rather than an application.
"""

from typing import Tuple

ALLOWED_TOOLS: Tuple[str, ...] = (
    "Read",
    "Write",
    "Edit",
    "MultiEdit",
    "Bash",
    "LS",
    "Glob",
    "Grep",
)

DATA_KEYWORDS = ("data", "api", "chart")

_TEMPLATE = """{prompt}

IMPORTANT: You are creating an OpenComponent, not a full website. Requirements:

1. COMPONENT STRUCTURE: You are working in a directory that already has:
   - package.json (component metadata - you may need to update dependencies)
   - view.js (main component rendering - REPLACE this with your component)
   - server.js (server-side logic - optional, update if needed for data)
   - public/ directory (for static assets like CSS, images)

2. COMPONENT TYPE: Create a {component_type} component that:
   - Is focused and reusable
   - Has a single clear purpose
   - Can be embedded in other applications
   - {framework}

3. FILES TO GENERATE:
   - view.js: Main component rendering logic (this is what users see)
   - server.js: Server-side data logic (if component needs data fetching)
   - package.json: Update with proper dependencies and metadata
   - public/style.css: Component styles (if needed)
   - Any other assets in public/ folder

4. COMPONENT FEATURES:
   - Make it visually appealing and modern
   - Include proper error handling
   - Make it responsive if it's a UI component
   - Include reasonable defaults
   - Add proper documentation in package.json description

5. EXAMPLES OF GOOD COMPONENTS:
   - Button with variants (primary, secondary, etc.)
   - Card component with customizable content
   - Data table with sorting
   - Chart component with API integration
   - Modal/dialog component
   - Form input with validation
   - Navigation menu
   - Loading spinner/skeleton

Focus on creating ONE high-quality, reusable component rather than multiple components.
"""


def component_type_hint(prompt: str) -> str:
    lowered = prompt.lower()
    return "data-driven" if any(word in lowered for word in DATA_KEYWORDS) else "UI"


def framework_hint(prompt: str) -> str:
    lowered = prompt.lower()
    if "react" in lowered:
        return "Uses React"
    if "vue" in lowered:
        return "Uses Vue"
    return "Uses vanilla JavaScript or your preferred framework"


def build_instruction(prompt: str) -> str:
    return _TEMPLATE.format(
        prompt=prompt.strip(),
        component_type=component_type_hint(prompt),
        framework=framework_hint(prompt),
    )
