"""Workflow Engine: graph model, traversal, expression evaluation and run lifecycle.

Modules:
- graph: WorkflowGraph / Node / Edge and node type parsing
- template: {{ placeholder }} resolution
- conditions: restricted boolean expression evaluator
- sandbox, transforms: Transform node vocabulary
- executor: depth-first traversal engine
- coordinator: run lifecycle, persistence sink and notifications
"""
