"""Story-to-comic backend: scenes, prompts, panel images, PDF export and a saved-comics library."""
