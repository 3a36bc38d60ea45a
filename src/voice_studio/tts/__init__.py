"""
Generation Pipeline Components.

    - chunker.py: Sentence-packing text segmentation
    - segments.py: Segment records and the id-indexed segment store
    - quota.py: Rolling usage window for the shared credential
    - credentials.py: Credential pool and worker assignment
    - orchestrator.py: Batch fan-out, reassembly and export
    - provider.py: Synthesis provider contract and factory
    - providers/: Provider implementations (Gemini)
    - storage.py: Persisted credentials and usage counters
    - voices.py: Prebuilt voice and language catalogue
"""
