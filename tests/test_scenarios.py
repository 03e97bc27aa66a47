"""End-to-end retrieval scenarios over a temporary index."""

from __future__ import annotations

import os
import time
from pathlib import Path

from docretrieval.index.indexer import Indexer
from docretrieval.index.search import HybridSearcher

NINETY_DAYS = 90 * 86400


def test_lexical_only_index_still_finds_exact_phrase(
    store, failing_embedder, docs_dir: Path
) -> None:
    sentences = [f"Sentence number {i:03d} talks about topic {i:03d}. " for i in range(70)]
    sentences[35] = "The quartz flamingo migrates at dawn today. "
    path = docs_dir / "long_notes.txt"
    path.write_text("".join(sentences))

    document = Indexer(store, failing_embedder).index_path(path)
    chunks = store.get_chunks(document.id)
    response = HybridSearcher(failing_embedder, store).search("quartz flamingo", limit=5)

    assert len(chunks) == 3
    assert all(chunk.embedding is None for chunk in chunks)
    assert all(chunk.token_count > 0 for chunk in chunks)
    assert [chunk.index for chunk in chunks if "quartz flamingo" in chunk.text] == [1]

    assert response.degraded
    assert response.results
    top = response.results[0]
    assert (top.document_id, top.chunk_index, top.channel) == (document.id, 1, "keyword")
    assert all(result.channel == "keyword" for result in response.results)


def test_important_certificate_survives_invoice_flood(store, embedder, docs_dir: Path) -> None:
    certificate = docs_dir / "fernpilot_zertifikat.txt"
    certificate.write_text(
        "Zertifikat über die bestandene Fernpilot Prüfung. "
        "Die Drohne darf in der offenen Kategorie betrieben werden."
    )
    old = time.time() - NINETY_DAYS
    for i in range(20):
        invoice = docs_dir / f"telekom_rechnung_{i:02d}.txt"
        invoice.write_text(
            "Rechnung der Deutsche Telekom für Mobilfunk Leistungen im Abrechnungszeitraum."
        )
        os.utime(invoice, (old, old))

    indexer = Indexer(store, embedder)
    stats = indexer.index_directory(docs_dir)
    response = HybridSearcher(embedder, store).search("zzqx", limit=5)

    assert stats.new == 21
    cert_doc = store.get_document_by_path(certificate.resolve())
    assert (cert_doc.document_type, cert_doc.category, cert_doc.importance) == (
        "certificate",
        "aviation",
        2.0,
    )

    assert not response.degraded
    names = [result.path.name for result in response.results]
    assert "fernpilot_zertifikat.txt" in names
    assert names[0] == "fernpilot_zertifikat.txt"
    invoices = [r for r in response.results if r.category == "telecommunications"]
    assert len(invoices) <= 2
    assert all(r.channel == "vector" for r in response.results)
