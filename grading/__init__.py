"""
Exam Grading Engine

This package contains the core components for grading exam submissions:
- models: Data structures for exam sets, questions and graded answers
- sandbox: Isolated, time- and output-bounded code execution
- equivalence: Code question grading by program output comparison
- grader: Per-question-type grading rules
- aggregator: Folding a submission's answers into a score
- store: Atomic persistence of submissions
"""

__version__ = "1.0.0"
