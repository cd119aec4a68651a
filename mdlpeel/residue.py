"""
mdlpeel SDU Residue

The residue of a layer is what its hypothesis leaves unexplained: the SDU
segments of every successfully parsed message. They become the corpus of
the next layer down.

Order: message order first, then position inside the message. Exceptions
contribute nothing, and neither do SDUs shorter than min_sdu_size. Every SDU is a view into the parent message, so deep
recursion never copies payload bytes.
"""

from __future__ import annotations

from mdlpeel.corpus import Corpus, CorpusMeta
from mdlpeel.segment import ParsedCorpus


def extract_sdu_corpus(corpus: Corpus, parsed: ParsedCorpus, min_sdu_size: int = 0) -> Corpus:
    views = [
        view for d in parsed.decompositions() for view in d.sdu_views()
        if len(view) >= min_sdu_size
    ]
    meta = CorpusMeta(
        source=f"{corpus.source}/{parsed.hypothesis.kind}",
        message_count=len(views),
        total_bytes=sum(len(v) for v in views),
        flow_id=corpus.meta.flow_id,
        parent=corpus.source,
    )
    return Corpus(views, meta)
