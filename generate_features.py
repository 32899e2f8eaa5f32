from tqdm import tqdm
import sys
import os
import argparse
import pathlib
import time
import logging
import json
import hashlib

import pyarrow as pa
import pyarrow.parquet as pq

from config import setup_logging
from signature_features import FEATURE_NAMES, from_bytes_for_training
from string_features import extract_strings, malicious_label_from_filename

logger = logging.getLogger(__name__)

KIND_SIGNATURE = "signature"
KIND_STRINGS = "strings"
KINDS = (KIND_SIGNATURE, KIND_STRINGS)


# --- Utility Functions ---
def generate_timestamp_filename(prefix, extension):
    """Generate a filename with a timestamp in milliseconds."""
    timestamp = int(time.time() * 1000)
    return f"{prefix}_{timestamp}.{extension}"


def read_file_bytes(path):
    with open(path, 'rb') as f:
        return f.read()


# --- Record Builders ---
def build_signature_record(path, data):
    """
    Signature-feature training record, or None when the filename carries
    no file-type label.
    """
    name = pathlib.Path(path).name
    vector = from_bytes_for_training(data, name)
    if vector.label is None:
        return None
    record = {"name": name}
    record.update(vector.to_record())
    record["sha256"] = hashlib.sha256(data).hexdigest()
    return record


def build_strings_record(path, data):
    """Strings-feature training record, labeled 1 for malicious and 0 for benign."""
    name = pathlib.Path(path).name
    return {
        "name": name,
        "label": malicious_label_from_filename(name),
        "strings": extract_strings(data),
        "sha256": hashlib.sha256(data).hexdigest(),
    }


RECORD_BUILDERS = {
    KIND_SIGNATURE: build_signature_record,
    KIND_STRINGS: build_strings_record,
}


def list_sample_files(folder):
    files = []
    for entry in sorted(os.scandir(folder), key=lambda e: e.name):
        if entry.is_file():
            files.append(entry.path)
        else:
            logger.debug(f"Skipping non-file entry: {entry.path}")
    return files


def extract_folder(folder, kind, jsonl_output_path=None, parquet_output_path=None):
    """
    Builds one training record per file in `folder` and streams them to JSONL
    and/or Parquet. Returns (written, skipped).
    """
    if kind not in RECORD_BUILDERS:
        raise ValueError(f"Unknown feature kind '{kind}'. Expected one of {KINDS}")
    if not os.path.isdir(folder):
        logger.error(f"{folder} does not exist")
        return 0, 0

    build_record = RECORD_BUILDERS[kind]
    files = list_sample_files(folder)
    logger.info(f"Found {len(files)} files in '{folder}' for {kind} extraction.")

    results_for_parquet = [] if parquet_output_path else None
    written = 0
    skipped = 0
    start_time = time.time()

    jsonl_outfile = None
    try:
        if jsonl_output_path:
            logger.info(f"Streaming JSON Lines output to: {jsonl_output_path}")
            jsonl_outfile = open(jsonl_output_path, 'w', encoding='utf-8')

        pbar = tqdm(files, desc="Extracting Features", unit="file")
        for path in pbar:
            record = build_record(path, read_file_bytes(path))
            if record is None:
                logger.warning(f"Skipping {path}: filename matches no file-type label (expected 'ps1', 'exe' or 'doc').")
                skipped += 1
            else:
                written += 1
                if jsonl_outfile:
                    json.dump(record, jsonl_outfile)
                    jsonl_outfile.write('\n')
                if results_for_parquet is not None:
                    results_for_parquet.append(record)
            pbar.set_postfix(Written=written, Skipped=skipped, refresh=False)
    finally:
        if jsonl_outfile:
            jsonl_outfile.close()

    elapsed = time.time() - start_time
    logger.info(f"Extracted {written} records ({skipped} skipped) from '{folder}' in {elapsed:.2f} seconds.")

    if parquet_output_path:
        write_parquet_output(results_for_parquet, parquet_output_path, kind)

    return written, skipped


def write_parquet_output(results, parquet_output_path, kind):
    """Writes the collected records to a Parquet file."""
    if not results:
        logger.warning("No results collected to write to Parquet.")
        return

    logger.info(f"Writing {len(results)} results to Parquet file: {parquet_output_path}")
    fields = [
        pa.field('name', pa.string()),
        pa.field('label', pa.int64()),
    ]
    if kind == KIND_SIGNATURE:
        fields.extend(pa.field(name, pa.int64()) for name in FEATURE_NAMES)
    else:
        fields.append(pa.field('strings', pa.string()))
    fields.append(pa.field('sha256', pa.string()))

    schema = pa.schema(fields)
    columns = [pa.array([r[field.name] for r in results], type=field.type) for field in fields]
    table = pa.Table.from_arrays(columns, schema=schema)
    pq.write_table(table, parquet_output_path)
    logger.info(f"(Success) Parquet file written to {parquet_output_path} ({len(results)} rows).")


# --- Main Function ---
def main(argv=None):
    parser = argparse.ArgumentParser(description="Extract labelled training features from a folder of samples")
    parser.add_argument("--kind", choices=KINDS, required=True,
                        help="'signature' for the file-type model, 'strings' for the malicious model")
    parser.add_argument("--input", type=str, required=True, help="Directory containing sample files")
    parser.add_argument("--jsonl", type=str, help="Path for output JSON Lines file (default if no format specified)")
    parser.add_argument("--parquet", type=str, help="Path for output Parquet file")
    args = parser.parse_args(argv)

    jsonl_output_path = args.jsonl
    if not args.jsonl and not args.parquet:
        jsonl_output_path = generate_timestamp_filename(f"{args.kind}_features", "jsonl")
        logger.info(f"No output format specified, defaulting to JSON Lines: {jsonl_output_path}")

    if not os.path.isdir(args.input):
        logger.error(f"(Error) Input directory not found: {args.input}")
        return 1

    written, skipped = extract_folder(args.input, args.kind, jsonl_output_path, args.parquet)
    print(f"Extracted {written} files ({skipped} skipped)")
    return 0


if __name__ == "__main__":
    setup_logging()
    exit_code = main()
    logger.info("Script finished.")
    sys.exit(exit_code)
