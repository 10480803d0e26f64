"""
Progressive lesson generation pipeline.

This package orchestrates:
1. Lesson plan generation with a text model (Gemini or OpenAI)
2. Image lookup on Wikipedia for each subsection
3. Image optimisation into Django storage
4. Speech synthesis of the intro, sections and conclusion
5. Stage-by-stage persistence and progress events over channels
"""
