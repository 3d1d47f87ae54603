"""Fill missing assembly and sample metadata from NCBI.

Assembly rows with an accession but incomplete metadata (accession type,
replicon type, or the linked sample's biosample, geo tag, collection date,
strain name or taxon) are processed in batches of distinct accessions:

1. Split the batch into assembly accessions (GCA_/GCF_) and sequence
   accessions; fetch assembly summaries and GenBank records respectively,
   reading the response cache first.
2. Collect the BioSample ids found in the batch and fetch them once.
3. Update each target: skip on version mismatch, fill accession and
   replicon type, upsert the NCBI taxon and walk its lineage, link the
   biosample unless another sample owns it, reconcile the strain name and
   fill geo tag and collection date.

Only NULL columns are filled. Per-accession failures are logged, counted
and skipped; the run itself only fails on store errors.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from collections.abc import Iterator
from dataclasses import dataclass, field

from tale_store.clients.ncbi import NcbiClient
from tale_store.config import DEFAULT_BATCH_SIZE, DEFAULT_DELAY_MS
from tale_store.errors import ExternalFetchFailure, RecordParseFailure
from tale_store.ncbi.cache import ResponseCache
from tale_store.ncbi.classify import detect_replicon_type, infer_accession_type, is_assembly_accession
from tale_store.ncbi.records import (
    GenbankData,
    TaxonomyRecord,
    extract_accession,
    parse_assembly_summary,
    parse_biosample_xml,
    parse_genbank_record,
    parse_taxonomy_xml,
    split_biosample_records,
    split_genbank_records,
)
from tale_store.ncbi.taxonomy import TaxonParts, derive_rank, normalize_rank, parse_taxon_from_name
from tale_store.store.connection import transaction
from tale_store.store.schema import ensure_schema
from tale_store.store.upsert import upsert
from tale_store.strains.matching import (
    sanitize_metadata_value,
    should_replace_strain,
    strain_matches,
    trim_to_none,
)

logger = logging.getLogger(__name__)

# Ranks whose parent is rewired to the matching species node
REWIRED_RANKS = frozenset({"pathovar", "pathogroup"})

MAX_LINEAGE_DEPTH = 40

TARGETS_SQL = """
SELECT a.id, a.accession, a.version, a.accession_type, a.replicon_type, a.sample_id,
       s.legacy_strain_name, lt.name, lt.species, lt.pathovar
FROM assembly a
LEFT JOIN samples s ON s.id = a.sample_id
LEFT JOIN taxonomy_legacy lt ON lt.id = s.legacy_taxon_id
WHERE a.accession IS NOT NULL
  AND (a.accession_type IS NULL OR a.replicon_type IS NULL OR s.biosample_id IS NULL
       OR s.geo_tag IS NULL OR s.collection_date IS NULL OR s.strain_name IS NULL
       OR s.taxon_id IS NULL)
ORDER BY a.id
"""


@dataclass
class AssemblyTarget:
    """An assembly row (plus its sample's legacy labels) needing metadata."""

    assembly_id: int
    accession: str
    version: str | None = None
    accession_type: str | None = None
    replicon_type: str | None = None
    sample_id: int | None = None
    legacy_strain_name: str | None = None
    legacy_name: str | None = None
    legacy_species: str | None = None
    legacy_pathovar: str | None = None

    @property
    def fetch_id(self) -> str:
        """Accession with version when the version is known."""
        if self.version and self.version.strip():
            return f"{self.accession}.{self.version.strip()}"
        return self.accession


@dataclass
class EnrichmentStats:
    """Statistics from an enrichment run."""

    accessions: int = 0
    targets: int = 0
    batches: int = 0
    processed: int = 0
    missing_records: int = 0
    fetch_failures: int = 0
    parse_failures: int = 0
    version_mismatches: int = 0
    biosample_conflicts: int = 0
    strain_mismatches: int = 0
    strain_replacements: int = 0
    taxonomy_mismatches: int = 0
    cancelled: bool = False
    failed_accessions: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        text = (
            f"processed={self.processed}/{self.targets}, accessions={self.accessions}, "
            f"batches={self.batches}, missing={self.missing_records}, "
            f"fetch_failures={self.fetch_failures}, parse_failures={self.parse_failures}, "
            f"version_mismatches={self.version_mismatches}, "
            f"biosample_conflicts={self.biosample_conflicts}, "
            f"strain_mismatches={self.strain_mismatches}, taxonomy_mismatches={self.taxonomy_mismatches}"
        )
        if self.cancelled:
            text += " (cancelled)"
        return text


def version_matches(local: str | None, remote: str | None) -> bool:
    """Versions agree, or one side does not know its version."""
    if local is None or not local.strip() or remote is None or not remote.strip():
        return True
    return local.strip() == remote.strip()


def has_legacy_mismatch(target: AssemblyTarget, data: GenbankData, parts: TaxonParts | None) -> bool:
    """Compare the migrated legacy taxonomy with the NCBI organism."""
    if target.legacy_name is None and target.legacy_species is None and target.legacy_pathovar is None:
        return False
    ncbi_name = trim_to_none(data.organism)
    legacy_name = trim_to_none(target.legacy_name)
    if ncbi_name and legacy_name and ncbi_name.lower() != legacy_name.lower():
        return True
    if parts is not None:
        if target.legacy_species is not None and target.legacy_species.lower() != parts.species.lower():
            return True
        if (
            target.legacy_pathovar is not None
            and parts.pathovar is not None
            and target.legacy_pathovar.lower() != parts.pathovar.lower()
        ):
            return True
    return False


def _chunks(items: list[str], size: int) -> Iterator[list[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _taxon_int(value: str) -> int:
    try:
        return int(value.strip())
    except ValueError as e:
        raise RecordParseFailure(f"Invalid taxon id {value!r}") from e


class EnrichmentEngine:
    """Batch-sequential NCBI enrichment over one store.

    Args:
        conn: Store connection in autocommit mode (see ``open_store``)
        client: NCBI client
        cache: Raw response cache
        batch_size: Distinct accessions per batch
        delay_ms: Pause after every outbound request batch
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        client: NcbiClient,
        cache: ResponseCache,
        batch_size: int = DEFAULT_BATCH_SIZE,
        delay_ms: int = DEFAULT_DELAY_MS,
    ):
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.conn = conn
        self.client = client
        self.cache = cache
        self.batch_size = batch_size
        self.delay_ms = delay_ms
        self.stats = EnrichmentStats()
        self._taxa: dict[str, TaxonomyRecord | None] = {}

    # =========================================================================
    # Targets
    # =========================================================================

    def load_targets(self) -> dict[str, list[AssemblyTarget]]:
        """Assemblies with missing metadata, grouped by trimmed accession."""
        targets: dict[str, list[AssemblyTarget]] = {}
        for row in self.conn.execute(TARGETS_SQL):
            accession = (row[1] or "").strip()
            if not accession:
                continue
            target = AssemblyTarget(
                assembly_id=row[0],
                accession=accession,
                version=row[2],
                accession_type=row[3],
                replicon_type=row[4],
                sample_id=row[5],
                legacy_strain_name=row[6],
                legacy_name=row[7],
                legacy_species=row[8],
                legacy_pathovar=row[9],
            )
            targets.setdefault(accession, []).append(target)
        return targets

    # =========================================================================
    # Run
    # =========================================================================

    def run(self, cancel: threading.Event | None = None) -> EnrichmentStats:
        """Enrich every target; ``cancel`` is checked between batches."""
        with transaction(self.conn):
            ensure_schema(self.conn)

        targets = self.load_targets()
        accessions = sorted(targets)
        self.stats.accessions = len(accessions)
        self.stats.targets = sum(len(t) for t in targets.values())
        total_batches = (len(accessions) + self.batch_size - 1) // self.batch_size

        for index, batch in enumerate(_chunks(accessions, self.batch_size), start=1):
            if cancel is not None and cancel.is_set():
                logger.warning(f"Enrichment cancelled before batch {index}/{total_batches}")
                self.stats.cancelled = True
                break
            logger.info(
                f"NCBI: batch {index}/{total_batches} accessions={len(batch)} "
                f"processed={self.stats.processed}/{self.stats.targets}"
            )
            self.stats.batches += 1
            records = self._load_records(batch, targets)
            biosamples = self._load_biosamples(records)
            self._process_batch(batch, records, biosamples, targets)

        logger.info(f"NCBI: finished enrichment: {self.stats}")
        return self.stats

    def _pause(self) -> None:
        if self.delay_ms > 0:
            time.sleep(self.delay_ms / 1000)

    # =========================================================================
    # Fetching
    # =========================================================================

    def _load_records(self, batch: list[str], targets: dict[str, list[AssemblyTarget]]) -> dict[str, GenbankData]:
        """Parsed metadata keyed by fetch id and by bare accession."""
        nuccore = [acc for acc in batch if not is_assembly_accession(acc)]
        assembly = [acc for acc in batch if is_assembly_accession(acc)]

        fetch_ids: list[str] = []
        for acc in nuccore:
            for target in targets.get(acc, []):
                if target.fetch_id not in fetch_ids:
                    fetch_ids.append(target.fetch_id)
            if not targets.get(acc):
                fetch_ids.append(acc)

        parsed: dict[str, GenbankData] = {}
        for fetch_id, record in self._load_genbank(fetch_ids).items():
            try:
                data = parse_genbank_record(record)
            except RecordParseFailure as e:
                self.stats.parse_failures += 1
                logger.warning(f"NCBI: unparseable record id={fetch_id}: {e}")
                continue
            parsed[fetch_id] = data
            parsed.setdefault(fetch_id.split(".")[0], data)

        for acc in assembly:
            version = next((t.version for t in targets.get(acc, []) if t.version), None)
            data = self._load_assembly(acc, f"{acc}.{version}" if version else acc)
            if data is not None:
                parsed[acc] = data
        return parsed

    def _load_genbank(self, fetch_ids: list[str]) -> dict[str, str]:
        records: dict[str, str] = {}
        to_fetch: list[str] = []
        for fetch_id in fetch_ids:
            cached = self.cache.get("genbank", fetch_id)
            if cached is not None:
                records[fetch_id] = cached
            else:
                to_fetch.append(fetch_id)

        for chunk in _chunks(to_fetch, self.batch_size):
            try:
                text = self.client.fetch_genbank(chunk)
                if text is None:
                    raise ExternalFetchFailure(f"GenBank fetch failed for {len(chunk)} ids")
                returned = split_genbank_records(text)
                for fetch_id in chunk:
                    if fetch_id in returned:
                        records[fetch_id] = returned[fetch_id]
                        self.cache.put("genbank", fetch_id, returned[fetch_id])
                for record in returned.values():
                    accession = extract_accession(record)
                    for fetch_id in chunk:
                        if fetch_id in records:
                            continue
                        if fetch_id == accession:
                            records[fetch_id] = record
                            self.cache.put("genbank", fetch_id, record)
                        elif fetch_id.split(".")[0] == accession:
                            # different version than requested; the version check reports it
                            records[fetch_id] = record
            except ExternalFetchFailure as e:
                self.stats.fetch_failures += len(chunk)
                self.stats.failed_accessions.extend(chunk)
                logger.warning(f"NCBI: {e}")
            finally:
                self._pause()
        return records

    def _load_assembly(self, accession: str, term: str) -> GenbankData | None:
        xml = self.cache.get("assembly", accession)
        fetched = xml is None
        if fetched:
            try:
                xml = self.client.fetch_assembly_summary_for(term)
            finally:
                self._pause()
            if xml is None:
                self.stats.fetch_failures += 1
                self.stats.failed_accessions.append(accession)
                logger.warning(f"NCBI: assembly summary fetch failed accession={accession}")
                return None
        try:
            summary = parse_assembly_summary(xml)
        except RecordParseFailure as e:
            self.stats.parse_failures += 1
            logger.warning(f"NCBI: unparseable assembly summary accession={accession}: {e}")
            return None
        if summary is None:
            return None
        if fetched:
            self.cache.put("assembly", accession, xml)
        return summary.to_genbank(accession, xml)  # type: ignore[arg-type]

    def _load_biosamples(self, records: dict[str, GenbankData]) -> dict[str, str]:
        """Fetch the BioSample XML for every id found in the batch, once each."""
        ids = list(dict.fromkeys(d.biosample_id for d in records.values() if d.biosample_id))
        if ids:
            logger.info(f"NCBI: biosamples={len(ids)}")
        found: dict[str, str] = {}
        to_fetch: list[str] = []
        for biosample_id in ids:
            cached = self.cache.get("biosample", biosample_id)
            if cached is not None:
                found[biosample_id] = cached
            else:
                to_fetch.append(biosample_id)

        for chunk in _chunks(to_fetch, self.batch_size):
            try:
                xml = self.client.fetch_biosamples(chunk)
                if xml is None:
                    raise ExternalFetchFailure(f"BioSample fetch failed for {len(chunk)} ids")
                for biosample_id, record in split_biosample_records(xml).items():
                    found[biosample_id] = record
                    self.cache.put("biosample", biosample_id, record)
            except ExternalFetchFailure as e:
                self.stats.fetch_failures += len(chunk)
                logger.warning(f"NCBI: {e}")
            except RecordParseFailure as e:
                self.stats.parse_failures += 1
                logger.warning(f"NCBI: {e}")
            finally:
                self._pause()
        return found

    def _taxonomy_record(self, taxon_id: str) -> TaxonomyRecord | None:
        if taxon_id in self._taxa:
            return self._taxa[taxon_id]
        xml = self.cache.get("taxonomy", taxon_id)
        fetched = xml is None
        if fetched:
            try:
                xml = self.client.fetch_taxonomy(taxon_id)
            finally:
                self._pause()
            if xml is None:
                self.stats.fetch_failures += 1
                logger.warning(f"NCBI: taxonomy fetch failed taxon_id={taxon_id}")
                return None
        record = parse_taxonomy_xml(xml, taxon_id)
        if fetched and record is not None:
            self.cache.put("taxonomy", taxon_id, xml)
        self._taxa[taxon_id] = record
        return record

    # =========================================================================
    # Updates
    # =========================================================================

    def _process_batch(
        self,
        batch: list[str],
        records: dict[str, GenbankData],
        biosamples: dict[str, str],
        targets: dict[str, list[AssemblyTarget]],
    ) -> None:
        for acc in batch:
            for target in targets.get(acc, []):
                data = records.get(target.fetch_id) or records.get(acc)
                if data is None:
                    self.stats.missing_records += 1
                    logger.info(f"NCBI: missing record accession={acc}")
                    continue
                try:
                    with transaction(self.conn):
                        if self._process_target(target, data, biosamples):
                            self.stats.processed += 1
                except (RecordParseFailure, ExternalFetchFailure) as e:
                    self.stats.parse_failures += 1
                    self.stats.failed_accessions.append(acc)
                    logger.warning(f"NCBI: skipped accession={acc}: {e}")

    def _process_target(self, target: AssemblyTarget, data: GenbankData, biosamples: dict[str, str]) -> bool:
        if not version_matches(target.version, data.version):
            self.stats.version_mismatches += 1
            logger.info(
                f"NCBI: version mismatch accession={target.accession} "
                f"db_version={target.version} ncbi_version={data.version}"
            )
            return False

        self._update_assembly(target, data)

        if data.biosample_id:
            self._link_biosample(target, data.biosample_id)
            sample = parse_biosample_xml(data.biosample_id, biosamples.get(data.biosample_id))
            if sample is not None:
                self._update_sample(target, sample.strain, sample.geo, sample.collection_date, "biosample")
                return True
        else:
            logger.debug(f"NCBI: no biosample accession={target.accession}")
        self._update_sample(target, data.strain, data.geo, data.collection_date, "genbank")
        return True

    def _update_assembly(self, target: AssemblyTarget, data: GenbankData) -> None:
        if not target.accession_type:
            inferred = infer_accession_type(target.accession)
            if inferred is not None:
                self.conn.execute(
                    "UPDATE assembly SET accession_type = ? WHERE id = ? AND accession_type IS NULL",
                    (inferred, target.assembly_id),
                )
                target.accession_type = inferred
        if not target.replicon_type:
            replicon = detect_replicon_type(data, target.accession_type)
            if replicon is not None:
                self.conn.execute(
                    "UPDATE assembly SET replicon_type = ? WHERE id = ? AND replicon_type IS NULL",
                    (replicon, target.assembly_id),
                )
                target.replicon_type = replicon

        if not data.taxon_id:
            return
        parts = parse_taxon_from_name(data.organism)
        rank = derive_rank(parts)
        taxon_row = self._upsert_taxon(data.taxon_id, data.organism, parts, rank)
        if target.sample_id is not None:
            self.conn.execute(
                "UPDATE samples SET taxon_id = COALESCE(taxon_id, ?) WHERE id = ?",
                (taxon_row, target.sample_id),
            )
        self._update_lineage(data.taxon_id, taxon_row, rank)
        if has_legacy_mismatch(target, data, parts):
            self.stats.taxonomy_mismatches += 1
            logger.info(
                f"NCBI: taxonomy mismatch sample_id={target.sample_id} "
                f"legacy_name={target.legacy_name} ncbi_name={data.organism}"
            )

    def _upsert_taxon(self, taxon_id: str, name: str | None, parts: TaxonParts | None, rank: str | None) -> int:
        """Insert or refresh a taxonomy row keyed by NCBI taxon id."""
        return upsert(
            self.conn,
            "taxonomy",
            {"ncbi_tax_id": _taxon_int(taxon_id)},
            {
                "raw_name": name,
                "species": parts.species if parts else None,
                "pathovar": parts.pathovar if parts else None,
                "rank": rank,
            },
            mode="replace",
        )

    def _find_species_taxon(self, species: str | None) -> int | None:
        if not species:
            return None
        row = self.conn.execute(
            "SELECT id FROM taxonomy WHERE rank = 'species' AND (raw_name = ? OR species = ?) LIMIT 1",
            (species, species),
        ).fetchone()
        return row[0] if row else None

    def _update_lineage(self, taxon_id: str, row_id: int, derived_rank: str | None) -> None:
        """Walk parent taxa upward until a node is already linked.

        A pathovar (or pathogroup) node is attached to its species node when
        the store has one, instead of to NCBI's parent.
        """
        visited: set[str] = set()
        current_id: str | None = taxon_id
        current_row = row_id
        fallback = derived_rank
        while current_id and current_id not in visited and len(visited) < MAX_LINEAGE_DEPTH:
            visited.add(current_id)
            record = self._taxonomy_record(current_id)
            if record is None:
                return
            rank = normalize_rank(record.rank, fallback)

            parent_row: int | None = None
            parent_rank: str | None = None
            if record.parent_tax_id and record.parent_tax_id != current_id:
                parent = self._taxonomy_record(record.parent_tax_id)
                if parent is not None:
                    parent_parts = parse_taxon_from_name(parent.scientific_name)
                    parent_rank = normalize_rank(parent.rank, derive_rank(parent_parts))
                    parent_row = self._upsert_taxon(parent.taxon_id, parent.scientific_name, parent_parts, parent_rank)

            if rank is not None and rank.lower() in REWIRED_RANKS:
                parts = parse_taxon_from_name(record.scientific_name)
                species_row = self._find_species_taxon(parts.species if parts else None)
                if species_row is not None and species_row != current_row:
                    parent_row = species_row
            if parent_row == current_row:
                parent_row = None

            self.conn.execute(
                "UPDATE taxonomy SET rank = ?, parent_id = ? WHERE id = ?",
                (rank, parent_row, current_row),
            )
            if parent_row is None:
                return
            next_row = self.conn.execute(
                "SELECT ncbi_tax_id, parent_id FROM taxonomy WHERE id = ?", (parent_row,)
            ).fetchone()
            if next_row is None or next_row[1] is not None or next_row[0] is None:
                return
            current_id, current_row, fallback = str(next_row[0]), parent_row, parent_rank

    def _link_biosample(self, target: AssemblyTarget, biosample_id: str) -> bool:
        """Attach a biosample unless another sample already owns it."""
        if target.sample_id is None:
            return False
        row = self.conn.execute("SELECT id FROM samples WHERE biosample_id = ? LIMIT 1", (biosample_id,)).fetchone()
        if row is not None and row[0] != target.sample_id:
            self.stats.biosample_conflicts += 1
            logger.warning(
                f"NCBI: biosample already linked biosample_id={biosample_id} "
                f"existing_sample_id={row[0]} target_sample_id={target.sample_id}"
            )
            return False
        self.conn.execute(
            "UPDATE samples SET biosample_id = COALESCE(biosample_id, ?) WHERE id = ?",
            (biosample_id, target.sample_id),
        )
        return True

    def _update_sample(
        self,
        target: AssemblyTarget,
        strain: str | None,
        geo: str | None,
        collection_date: str | None,
        source: str,
    ) -> None:
        """Fill strain, geo tag and collection date where still NULL.

        A strain that contradicts the legacy label is logged and counted but
        still fills ``strain_name``; ``legacy_strain_name`` is never touched.
        """
        if target.sample_id is None:
            return
        legacy = target.legacy_strain_name
        strain_value = trim_to_none(strain)
        if not strain_matches(legacy, strain):
            self.stats.strain_mismatches += 1
            logger.warning(
                f"NCBI: strain mismatch sample_id={target.sample_id} db_strain={legacy} ncbi_{source}_strain={strain}"
            )
        elif should_replace_strain(legacy, strain) and strain_value != trim_to_none(legacy):
            self.stats.strain_replacements += 1
            logger.info(
                f"NCBI: strain replace sample_id={target.sample_id} before={legacy} after={strain_value} source={source}"
            )
        self.conn.execute(
            "UPDATE samples SET strain_name = COALESCE(strain_name, ?), geo_tag = COALESCE(geo_tag, ?), "
            "collection_date = COALESCE(collection_date, ?) WHERE id = ?",
            (
                strain_value,
                sanitize_metadata_value(geo),
                sanitize_metadata_value(collection_date),
                target.sample_id,
            ),
        )


def enrich_store(
    conn: sqlite3.Connection,
    client: NcbiClient,
    cache: ResponseCache,
    batch_size: int = DEFAULT_BATCH_SIZE,
    delay_ms: int = DEFAULT_DELAY_MS,
    cancel: threading.Event | None = None,
) -> EnrichmentStats:
    """Run one enrichment pass over the store."""
    engine = EnrichmentEngine(conn, client, cache, batch_size=batch_size, delay_ms=delay_ms)
    return engine.run(cancel=cancel)
