#!/usr/bin/env python3
import argparse
import json
import sys

from idpyoidc.configure import create_from_config_file

from mdqservice.configure import MDQConfiguration
from mdqservice.endpoint import parse_entity_filter
from mdqservice.endpoint import parse_query
from mdqservice.exception import MDQError
from mdqservice.mdq import MDQ
from mdqservice.metadata_api.fs import FlatFileMetadata


def make_parser():
    parser = argparse.ArgumentParser(description="Query SAML metadata as discojson")
    parser.add_argument('-c', "--config", help="Configuration file (JSON or YAML)")
    parser.add_argument('-m', "--metadata", help="Directory with <metadata set>.json files")
    parser.add_argument('-e', "--entity-id", dest="entity_id",
                        help="Relying party holding the trust profile")
    parser.add_argument('-p', "--profile", help="Trust profile name")
    parser.add_argument('-l', "--language")

    sub = parser.add_subparsers(dest="command", required=True)
    _lookup = sub.add_parser("lookup", help="Look up one entity")
    _lookup.add_argument("identifier", help="entityID or transformed identifier")
    _search = sub.add_parser("search", help="Search entities")
    _search.add_argument('-q', "--query", default='')
    _search.add_argument('-t', "--type", dest="entity_filter", default='idp')
    sub.add_parser("transform", help="Print transformed identifiers").add_argument("entity_ids",
                                                                                    nargs='+')
    return parser


def main(argv=None):
    args = make_parser().parse_args(argv)

    if args.config:
        config = create_from_config_file(MDQConfiguration, filename=args.config)
    else:
        config = MDQConfiguration({})

    metadata = FlatFileMetadata(fdir=args.metadata) if args.metadata else None
    mdq = MDQ(config, metadata=metadata)

    try:
        if args.command == "lookup":
            res = mdq.lookup_one(args.identifier, args.entity_id, args.profile, args.language)
        elif args.command == "search":
            res = mdq.search(parse_query(args.query), parse_entity_filter(args.entity_filter),
                             args.entity_id, args.profile, args.language)
        else:
            res = {e: mdq.get_transformed_from_entity_id(e) for e in args.entity_ids}
    except MDQError as err:
        print(f"{err.__class__.__name__}: {err}", file=sys.stderr)
        return 2

    print(json.dumps(res, indent=2))
    if args.command == "lookup" and not res:
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
