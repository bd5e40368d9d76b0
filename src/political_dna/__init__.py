"""Political DNA engine: ideological profiles from parliamentary voting records.

Turns categorized votes (and optional pre-election questionnaire answers)
into six-axis profiles, then derives from them:

- **Party analytics**: cohesion, polarization, topic ownership, pivot
- **Matching**: who votes like whom
- **Promise watch**: votes that contradict stated positions
- **Weather**: forecasts of pending votes

Run a full pass with: ``python scripts/dna_run.py --votes data/votes.json``
"""
